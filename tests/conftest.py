"""Shared pytest fixtures for the site-connectors test suite."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest

from site_connectors.config import Settings
from site_connectors.executor import RequestExecutor
from site_connectors.models import ArticleInput, ArticleStatus, SiteConfig

WP_BASE = "https://blog.example.com"
API_BASE = "https://api.example.com/v1"


# ---------------------------------------------------------------------------
# Settings isolation
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Return default Settings resolved away from any local config files."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("SITE_CONNECTORS_"):
            monkeypatch.delenv(name)
    return Settings()


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


@pytest.fixture()
def sleeps() -> list[float]:
    """Collects the backoff waits requested by the executor."""
    return []


@pytest.fixture()
def executor(sleeps: list[float]) -> Iterator[RequestExecutor]:
    """Executor with default retry policy whose sleeps are recorded, not slept."""
    with RequestExecutor(httpx.Client(), sleep=sleeps.append) as instance:
        yield instance


# ---------------------------------------------------------------------------
# Sites
# ---------------------------------------------------------------------------


@pytest.fixture()
def wordpress_site() -> SiteConfig:
    return SiteConfig(
        name="Mon Blog", type="wordpress", base_url=WP_BASE, api_token="wp-token"
    )


@pytest.fixture()
def api_site() -> SiteConfig:
    return SiteConfig(
        name="Headless CMS",
        type="api",
        base_url=API_BASE,
        api_token="api-token",
        config={"authType": "bearer"},
    )


@pytest.fixture()
def github_site() -> SiteConfig:
    return SiteConfig(
        name="Static Blog",
        type="git",
        base_url="https://github.com/acme/blog",
        api_token="ghp_token",
        config={
            "provider": "github",
            "branch": "main",
            "contentPath": "content/posts",
            "siteGenerator": "hugo",
            "siteUrl": "https://acme.example.com",
        },
    )


@pytest.fixture()
def gitlab_site() -> SiteConfig:
    return SiteConfig(
        name="GitLab Blog",
        type="git",
        base_url="https://gitlab.com/acme/blog.git",
        api_token="glpat-token",
        config={
            "provider": "gitlab",
            "branch": "pages",
            "contentPath": "_posts",
            "siteGenerator": "jekyll",
        },
    )


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


@pytest.fixture()
def article() -> ArticleInput:
    return ArticleInput(
        title="Hello, World! 2024",
        content="First post body.",
        status=ArticleStatus.PUBLISH,
        categories=("News", "Python"),
        tags=("intro",),
        excerpt="A first post",
    )


@pytest.fixture()
def draft_article() -> ArticleInput:
    return ArticleInput(
        title="Work in progress",
        content="Not ready yet.",
        status=ArticleStatus.DRAFT,
        tags=("wip",),
    )
