"""Publish articles to a Git-backed site, then read them back.

The GitHub contents API is replaced by an in-memory repository served
through respx, so commits made by ``publish`` are visible to later reads.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import respx
from httpx import Response

from site_connectors.config import Settings
from site_connectors.connectors import GIT_DESCRIPTOR, GitConnector
from site_connectors.executor import RequestExecutor
from site_connectors.factory import ConnectorFactory
from site_connectors.models import ArticleInput, ArticleStatus, ListFilters, SiteConfig

pytestmark = pytest.mark.integration

API_HOST = "api.github.com"
REPO_PATH = "/repos/acme/blog"
CONTENTS_PREFIX = f"{REPO_PATH}/contents/"


class InMemoryRepo:
    """Just enough of the GitHub contents API to publish and list files."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.commits: list[str] = []

    def info(self, request: httpx.Request) -> Response:
        return Response(200, json={"name": "blog", "description": "Notes"})

    def contents(self, request: httpx.Request) -> Response:
        path = request.url.path.removeprefix(CONTENTS_PREFIX)
        if request.method == "PUT":
            body = json.loads(request.content)
            if path in self.files:
                return Response(422, json={"message": "sha wasn't supplied"})
            self.files[path] = base64.b64decode(body["content"]).decode("utf-8")
            self.commits.append(body["message"])
            sha = f"sha-{len(self.commits)}"
            return Response(201, json={"content": {"sha": sha, "path": path}})

        if path in self.files:
            encoded = base64.b64encode(self.files[path].encode("utf-8"))
            return Response(200, json={"content": encoded.decode("ascii")})
        prefix = f"{path.rstrip('/')}/"
        entries = [
            {"name": name.rsplit("/", 1)[-1], "path": name, "type": "file"}
            for name in self.files
            if name.startswith(prefix)
        ]
        if entries:
            return Response(200, json=entries)
        return Response(404, json={"message": "Not Found"})


class Clock:
    """Deterministic clock advancing one day per publish."""

    def __init__(self) -> None:
        self.current = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(days=1)
        return self.current


@pytest.fixture()
def repo() -> Iterator[InMemoryRepo]:
    store = InMemoryRepo()
    with respx.mock(assert_all_called=False) as router:
        router.get(f"https://{API_HOST}{REPO_PATH}").mock(side_effect=store.info)
        router.route(host=API_HOST, path__startswith=CONTENTS_PREFIX).mock(
            side_effect=store.contents
        )
        yield store


@pytest.fixture()
def factory(executor: RequestExecutor, settings: Settings) -> ConnectorFactory:
    clock = Clock()
    return ConnectorFactory(executor, settings).with_connector(
        GIT_DESCRIPTOR,
        lambda shared, resolved: GitConnector(shared, resolved.git, now=clock),
    )


@pytest.fixture()
def site() -> SiteConfig:
    return SiteConfig(
        name="Static Blog",
        type="git",
        base_url="https://github.com/acme/blog",
        api_token="ghp_token",
        config={
            "provider": "github",
            "siteGenerator": "hugo",
            "siteUrl": "https://acme.example.com",
        },
    )


class TestGitRoundTrip:
    """Committed articles come back as content records."""

    def test_publish_then_list(
        self, factory: ConnectorFactory, site: SiteConfig, repo: InMemoryRepo
    ) -> None:
        connector = factory.resolve(site)
        first = connector.publish(
            site,
            ArticleInput(
                title="Premier article",
                content="Bonjour le monde.",
                status=ArticleStatus.PUBLISH,
                tags=("intro",),
                excerpt="Le tout premier",
            ),
        )
        second = connector.publish(
            site,
            ArticleInput(title="Second jet", content="En cours.", tags=("wip",)),
        )

        assert first.success and second.success
        assert first.remote_id == "sha-1"
        assert first.url == "https://acme.example.com/posts/premier-article/"
        assert repo.commits == ["Add: Premier article", "Add: Second jet"]
        assert set(repo.files) == {
            "content/posts/premier-article.md",
            "content/posts/second-jet.md",
        }

        listing = connector.fetch_posts(site)
        assert listing.total == 2
        assert [item.title for item in listing.items] == [
            "Second jet",
            "Premier article",
        ]
        newest, oldest = listing.items
        assert newest.status == "draft"
        assert newest.tags == ["wip"]
        assert oldest.status == "publish"
        assert oldest.excerpt == "Le tout premier"
        assert oldest.content == "Bonjour le monde."
        assert oldest.url == first.url

        drafts = connector.fetch_posts(site, ListFilters(status="draft"))
        assert [item.slug for item in drafts.items] == ["second-jet"]

        stats = connector.fetch_stats(site)
        assert stats.total_posts == 2
        assert stats.site_title == "blog"

    def test_fetch_single_post(
        self, factory: ConnectorFactory, site: SiteConfig, repo: InMemoryRepo
    ) -> None:
        connector = factory.resolve(site)
        connector.publish(
            site,
            ArticleInput(
                title="Guide: YAML & Markdown",
                content="# Titre\n\nTexte.",
                status=ArticleStatus.PUBLISH,
                categories=("Docs",),
            ),
        )

        post = connector.fetch_post(site, "guide-yaml-markdown.md")
        assert post is not None
        assert post.title == "Guide: YAML & Markdown"
        assert post.categories == ["Docs"]
        assert post.content == "# Titre\n\nTexte."
        assert connector.fetch_post(site, "absent.md") is None

    def test_duplicate_title_is_a_failed_result(
        self, factory: ConnectorFactory, site: SiteConfig, repo: InMemoryRepo
    ) -> None:
        connector = factory.resolve(site)
        article = ArticleInput(title="Doublon", content="x")
        assert connector.publish(site, article).success is True

        again = connector.publish(site, article)
        assert again.success is False
        assert "sha" in again.message
        assert len(repo.commits) == 1
