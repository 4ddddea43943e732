"""Unit tests for the GitHub and GitLab content API clients."""

from __future__ import annotations

import base64
import json

import pytest
import respx
from httpx import Response

from site_connectors.config import GitSettings
from site_connectors.connectors.git_providers import (
    GitEntry,
    GitHubProvider,
    GitLabProvider,
    build_provider,
    extract_repo_path,
)
from site_connectors.exceptions import (
    ConnectorConfigurationError,
    InvalidResponseError,
    InvalidTokenError,
)
from site_connectors.executor import RequestExecutor
from site_connectors.models import SiteConfig

GITHUB_REPO = "https://api.github.com/repos/acme/blog"
GITLAB_PROJECT = "https://gitlab.com/api/v4/projects/acme%2Fblog"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture()
def github(executor: RequestExecutor) -> GitHubProvider:
    return GitHubProvider(
        executor,
        api_url="https://api.github.com",
        repo_path="acme/blog",
        token="ghp_token",
        branch="main",
    )


@pytest.fixture()
def gitlab(executor: RequestExecutor) -> GitLabProvider:
    return GitLabProvider(
        executor,
        api_url="https://gitlab.com/api/v4",
        repo_path="acme/blog",
        token="glpat-token",
        branch="pages",
    )


class TestExtractRepoPath:
    """Repository URLs reduce to owner/name."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/acme/blog",
            "https://www.github.com/acme/blog.git",
            "http://gitlab.com/acme/blog/",
            "https://bitbucket.org/acme/blog",
            "acme/blog",
        ],
    )
    def test_variants(self, url: str) -> None:
        assert extract_repo_path(url) == "acme/blog"

    def test_nested_gitlab_group(self) -> None:
        assert extract_repo_path("https://gitlab.com/org/team/blog.git") == (
            "org/team/blog"
        )


class TestGitEntry:
    """Only Markdown files count as content."""

    def test_markdown_file(self) -> None:
        assert GitEntry("a.md", "posts/a.md").is_markdown

    def test_directory_named_like_markdown(self) -> None:
        assert not GitEntry("a.md", "posts/a.md", kind="dir").is_markdown

    def test_other_file(self) -> None:
        assert not GitEntry("logo.png", "posts/logo.png").is_markdown


class TestGitHubProvider:
    """GitHub contents API requests and decoding."""

    @respx.mock
    def test_repo_info_headers(self, github: GitHubProvider) -> None:
        route = respx.get(GITHUB_REPO).mock(
            return_value=Response(200, json={"name": "blog"})
        )
        assert github.repo_info() == {"name": "blog"}
        headers = route.calls.last.request.headers
        assert headers["Authorization"] == "Bearer ghp_token"
        assert headers["Accept"] == "application/vnd.github.v3+json"

    @respx.mock
    def test_list_directory(self, github: GitHubProvider) -> None:
        route = respx.get(f"{GITHUB_REPO}/contents/content/posts").mock(
            return_value=Response(
                200,
                json=[
                    {"name": "a.md", "path": "content/posts/a.md", "type": "file"},
                    {"name": "img", "path": "content/posts/img", "type": "dir"},
                ],
            )
        )
        entries = github.list_directory("/content/posts/")
        assert entries == [
            GitEntry("a.md", "content/posts/a.md", "file"),
            GitEntry("img", "content/posts/img", "dir"),
        ]
        assert route.calls.last.request.url.params["ref"] == "main"

    @respx.mock
    def test_read_file_decodes_base64(self, github: GitHubProvider) -> None:
        document = "---\ntitle: Salut\n---\nCorps é"
        encoded = _b64(document)
        # GitHub wraps base64 bodies at 60 columns.
        wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
        respx.get(f"{GITHUB_REPO}/contents/content/posts/a.md").mock(
            return_value=Response(200, json={"content": wrapped, "encoding": "base64"})
        )
        assert github.read_file("content/posts/a.md") == document

    @respx.mock
    def test_read_missing_file(self, github: GitHubProvider) -> None:
        respx.get(f"{GITHUB_REPO}/contents/x.md").mock(return_value=Response(404))
        assert github.read_file("x.md") is None

    @respx.mock
    def test_read_undecodable_file(self, github: GitHubProvider) -> None:
        respx.get(f"{GITHUB_REPO}/contents/x.md").mock(
            return_value=Response(200, json={"content": "//4="})
        )
        with pytest.raises(InvalidResponseError):
            github.read_file("x.md")

    @respx.mock
    def test_create_file(self, github: GitHubProvider) -> None:
        route = respx.put(f"{GITHUB_REPO}/contents/content/posts/hello.md").mock(
            return_value=Response(
                201, json={"content": {"sha": "abc123"}, "commit": {"sha": "def"}}
            )
        )
        result = github.create_file("content/posts/hello.md", "# Hi", "Add: Hi")
        assert result.id == "abc123"
        assert result.path == "content/posts/hello.md"
        body = json.loads(route.calls.last.request.content)
        assert body == {"message": "Add: Hi", "content": _b64("# Hi"), "branch": "main"}

    @respx.mock
    def test_create_file_falls_back_to_commit_sha(
        self, github: GitHubProvider
    ) -> None:
        respx.put(f"{GITHUB_REPO}/contents/a.md").mock(
            return_value=Response(201, json={"commit": {"sha": "def"}})
        )
        assert github.create_file("a.md", "x", "m").id == "def"

    @respx.mock
    def test_auth_failure_propagates(self, github: GitHubProvider) -> None:
        respx.get(GITHUB_REPO).mock(return_value=Response(401))
        with pytest.raises(InvalidTokenError):
            github.repo_info()


class TestGitLabProvider:
    """GitLab repository files API requests."""

    @respx.mock
    def test_repo_info_uses_private_token(self, gitlab: GitLabProvider) -> None:
        route = respx.get(GITLAB_PROJECT).mock(
            return_value=Response(200, json={"name": "blog"})
        )
        gitlab.repo_info()
        request = route.calls.last.request
        assert request.headers["PRIVATE-TOKEN"] == "glpat-token"
        assert request.url.raw_path == b"/api/v4/projects/acme%2Fblog"

    @respx.mock
    def test_list_directory_uses_tree(self, gitlab: GitLabProvider) -> None:
        route = respx.get(f"{GITLAB_PROJECT}/repository/tree").mock(
            return_value=Response(
                200,
                json=[
                    {"name": "2024-03-01-a.md", "path": "_posts/2024-03-01-a.md"},
                    {"name": "drafts", "path": "_posts/drafts", "type": "tree"},
                ],
            )
        )
        entries = gitlab.list_directory("_posts")
        assert [entry.kind for entry in entries] == ["file", "dir"]
        params = route.calls.last.request.url.params
        assert params["path"] == "_posts"
        assert params["ref"] == "pages"
        assert params["per_page"] == "100"

    @respx.mock
    def test_read_file_raw(self, gitlab: GitLabProvider) -> None:
        route = respx.get(
            f"{GITLAB_PROJECT}/repository/files/_posts%2Fa.md/raw"
        ).mock(return_value=Response(200, text="---\ntitle: A\n---\n"))
        assert gitlab.read_file("_posts/a.md") == "---\ntitle: A\n---\n"
        raw_path = route.calls.last.request.url.raw_path
        assert b"/repository/files/_posts%2Fa.md/raw" in raw_path

    @respx.mock
    def test_read_missing_file(self, gitlab: GitLabProvider) -> None:
        respx.get(f"{GITLAB_PROJECT}/repository/files/x.md/raw").mock(
            return_value=Response(404)
        )
        assert gitlab.read_file("x.md") is None

    @respx.mock
    def test_create_file(self, gitlab: GitLabProvider) -> None:
        route = respx.post(f"{GITLAB_PROJECT}/repository/files/_posts%2Fa.md").mock(
            return_value=Response(201, json={"file_path": "_posts/a.md"})
        )
        result = gitlab.create_file("_posts/a.md", "content", "Add: A")
        assert result.id == "_posts/a.md"
        body = json.loads(route.calls.last.request.content)
        assert body == {
            "branch": "pages",
            "content": "content",
            "commit_message": "Add: A",
        }


class TestBuildProvider:
    """Providers are selected from the site configuration."""

    def test_github_by_default(self, executor: RequestExecutor) -> None:
        site = SiteConfig(type="git", base_url="https://github.com/acme/blog")
        provider = build_provider(site, executor, GitSettings())
        assert isinstance(provider, GitHubProvider)
        assert provider.branch == "main"

    def test_gitlab_with_branch(
        self, executor: RequestExecutor, gitlab_site: SiteConfig
    ) -> None:
        provider = build_provider(gitlab_site, executor, GitSettings())
        assert isinstance(provider, GitLabProvider)
        assert provider.branch == "pages"

    def test_default_branch_from_settings(self, executor: RequestExecutor) -> None:
        site = SiteConfig(
            type="git", base_url="acme/blog", config={"provider": "GitLab"}
        )
        provider = build_provider(site, executor, GitSettings(default_branch="trunk"))
        assert provider.name == "gitlab"
        assert provider.branch == "trunk"  # type: ignore[attr-defined]

    @respx.mock
    def test_custom_api_url(self, executor: RequestExecutor) -> None:
        site = SiteConfig(
            type="git",
            base_url="https://git.corp.example/acme/blog",
            config={"provider": "gitlab", "apiUrl": "https://git.corp.example/api/v4"},
        )
        route = respx.get("https://git.corp.example/api/v4/projects/acme%2Fblog").mock(
            return_value=Response(200, json={"name": "blog"})
        )
        provider = build_provider(site, executor, GitSettings())
        provider.repo_info()
        assert route.called

    def test_unsupported_provider(self, executor: RequestExecutor) -> None:
        site = SiteConfig(
            type="git", base_url="acme/blog", config={"provider": "bitbucket"}
        )
        with pytest.raises(ConnectorConfigurationError, match="bitbucket"):
            build_provider(site, executor, GitSettings())
