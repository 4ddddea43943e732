"""Git hosting content APIs used by the static-site adapter.

Two providers are supported: GitHub (``/repos/{path}/contents/{file}``,
base64 file bodies) and GitLab (``/projects/{id}/repository/files/{file}``,
raw file bodies). A provider instance is bound to one repository and
branch and is built per call from the site configuration.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

from site_connectors.connectors.base import join_url
from site_connectors.exceptions import (
    ConnectorConfigurationError,
    EndpointNotFoundError,
    InvalidResponseError,
)

if TYPE_CHECKING:
    from site_connectors.config import GitSettings
    from site_connectors.executor import RequestExecutor
    from site_connectors.models import SiteConfig

SUPPORTED_PROVIDERS = ("github", "gitlab")

_SCHEME_RE = re.compile(r"^https?://(www\.)?")
_HOST_RE = re.compile(r"^(github\.com|gitlab\.com|bitbucket\.org)/")
_DOT_GIT_RE = re.compile(r"\.git$")


def extract_repo_path(url: str) -> str:
    """Reduce a repository URL to its ``owner/name`` path.

    Any host is dropped from a URL with a scheme, so self-hosted instances
    work too; scheme-less values only lose a well-known host prefix.

    Example::

        >>> extract_repo_path("https://www.github.com/acme/blog.git")
        'acme/blog'
    """
    path = url.strip()
    if _SCHEME_RE.match(path):
        path = _SCHEME_RE.sub("", path).partition("/")[2]
    else:
        path = _HOST_RE.sub("", path)
    path = _DOT_GIT_RE.sub("", path.rstrip("/"))
    return path.strip("/")


@dataclass(frozen=True)
class GitEntry:
    """One entry of a repository directory listing."""

    name: str
    path: str
    kind: str = "file"

    @property
    def is_markdown(self) -> bool:
        return self.kind != "dir" and self.name.endswith(".md")


@dataclass(frozen=True)
class CommitResult:
    """Identifier of a file created by a commit."""

    id: str | None
    path: str


class GitProvider(Protocol):
    """Content operations on one repository branch."""

    name: str

    def repo_info(self) -> dict[str, Any]: ...

    def list_directory(self, path: str) -> list[GitEntry]: ...

    def read_file(self, path: str) -> str | None: ...

    def create_file(self, path: str, content: str, message: str) -> CommitResult: ...


def _entries(payload: Any) -> list[GitEntry]:
    if not isinstance(payload, list):
        return []
    return [
        GitEntry(
            name=str(item.get("name", "")),
            path=str(item.get("path", item.get("name", ""))),
            kind="dir" if item.get("type") in ("dir", "tree") else "file",
        )
        for item in payload
        if isinstance(item, dict) and item.get("name")
    ]


def _as_dict(payload: Any) -> dict[str, Any]:
    return payload if isinstance(payload, dict) else {}


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


class GitHubProvider:
    """GitHub REST v3 contents API."""

    name = "github"

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        api_url: str,
        repo_path: str,
        token: str,
        branch: str,
    ) -> None:
        self._executor = executor
        self._base = join_url(api_url, f"repos/{repo_path}")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
        }
        self.branch = branch

    def _contents_url(self, path: str) -> str:
        return join_url(self._base, f"contents/{path.strip('/')}")

    def repo_info(self) -> dict[str, Any]:
        return _as_dict(
            self._executor.request_json("GET", self._base, headers=self._headers)
        )

    def list_directory(self, path: str) -> list[GitEntry]:
        payload = self._executor.request_json(
            "GET",
            self._contents_url(path),
            headers=self._headers,
            params={"ref": self.branch},
        )
        return _entries(payload)

    def read_file(self, path: str) -> str | None:
        url = self._contents_url(path)
        try:
            payload = self._executor.request_json(
                "GET", url, headers=self._headers, params={"ref": self.branch}
            )
        except EndpointNotFoundError:
            return None
        encoded = _as_dict(payload).get("content")
        if not isinstance(encoded, str):
            return None
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise InvalidResponseError(
                f"Undecodable file content at {url}: {exc}", url=url
            ) from exc

    def create_file(self, path: str, content: str, message: str) -> CommitResult:
        payload = _as_dict(
            self._executor.request_json(
                "PUT",
                self._contents_url(path),
                headers=self._headers,
                json={
                    "message": message,
                    "content": base64.b64encode(content.encode("utf-8")).decode(
                        "ascii"
                    ),
                    "branch": self.branch,
                },
            )
        )
        sha = _as_dict(payload.get("content")).get("sha") or _as_dict(
            payload.get("commit")
        ).get("sha")
        return CommitResult(id=str(sha) if sha else None, path=path)


# ---------------------------------------------------------------------------
# GitLab
# ---------------------------------------------------------------------------


class GitLabProvider:
    """GitLab v4 repository files API."""

    name = "gitlab"

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        api_url: str,
        repo_path: str,
        token: str,
        branch: str,
    ) -> None:
        self._executor = executor
        self._base = join_url(api_url, f"projects/{quote(repo_path, safe='')}")
        self._headers = {"PRIVATE-TOKEN": token}
        self.branch = branch

    def _file_url(self, path: str) -> str:
        return join_url(
            self._base, f"repository/files/{quote(path.strip('/'), safe='')}"
        )

    def repo_info(self) -> dict[str, Any]:
        return _as_dict(
            self._executor.request_json("GET", self._base, headers=self._headers)
        )

    def list_directory(self, path: str) -> list[GitEntry]:
        payload = self._executor.request_json(
            "GET",
            join_url(self._base, "repository/tree"),
            headers=self._headers,
            params={"path": path.strip("/"), "ref": self.branch, "per_page": 100},
        )
        return _entries(payload)

    def read_file(self, path: str) -> str | None:
        try:
            return self._executor.request_text(
                "GET",
                join_url(self._file_url(path), "raw"),
                headers=self._headers,
                params={"ref": self.branch},
            )
        except EndpointNotFoundError:
            return None

    def create_file(self, path: str, content: str, message: str) -> CommitResult:
        payload = _as_dict(
            self._executor.request_json(
                "POST",
                self._file_url(path),
                headers=self._headers,
                json={
                    "branch": self.branch,
                    "content": content,
                    "commit_message": message,
                },
            )
        )
        return CommitResult(id=str(payload.get("file_path") or path), path=path)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def build_provider(
    site: SiteConfig, executor: RequestExecutor, settings: GitSettings
) -> GitProvider:
    """Build the content API client for ``site``'s configured provider.

    Raises:
        ConnectorConfigurationError: If the provider is not supported.
    """
    provider = (site.option("provider", "github") or "github").lower()
    options: dict[str, Any] = {
        "repo_path": extract_repo_path(site.base_url),
        "token": site.api_token,
        "branch": site.option("branch", settings.default_branch)
        or settings.default_branch,
    }
    match provider:
        case "github":
            return GitHubProvider(
                executor,
                api_url=site.option("apiUrl") or settings.github_api_url,
                **options,
            )
        case "gitlab":
            return GitLabProvider(
                executor,
                api_url=site.option("apiUrl") or settings.gitlab_api_url,
                **options,
            )
        case _:
            raise ConnectorConfigurationError(
                f"Unsupported git provider {provider!r}; "
                f"expected one of {', '.join(SUPPORTED_PROVIDERS)}"
            )
