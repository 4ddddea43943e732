"""Unit tests for site_connectors.factory - type resolution and catalog."""

from __future__ import annotations

import threading

import pytest
import respx

from site_connectors.config import Settings
from site_connectors.connectors import (
    GenericApiConnector,
    GitConnector,
    SiteConnector,
    WordPressConnector,
)
from site_connectors.exceptions import ConnectorConfigurationError
from site_connectors.executor import RequestExecutor
from site_connectors.factory import ConnectorFactory
from site_connectors.models import (
    ArticleInput,
    ConnectorDescriptor,
    ContentListing,
    ContentPage,
    Feature,
    ListFilters,
    PublishResult,
    SiteConfig,
    StatsSnapshot,
)


@pytest.fixture()
def factory(executor: RequestExecutor, settings: Settings) -> ConnectorFactory:
    return ConnectorFactory(executor, settings)


class EchoConnector:
    """Minimal in-memory connector used to extend the registry."""

    descriptor = ConnectorDescriptor(
        type="echo",
        display_name="Echo",
        description="Records published articles in memory.",
        icon="echo",
        features=frozenset({Feature.PUBLISH}),
    )

    def __init__(self) -> None:
        self.published: list[ArticleInput] = []

    def supports(self, feature: Feature | str) -> bool:
        return feature == Feature.PUBLISH

    def test_connection(self, site: SiteConfig) -> bool:
        return True

    def publish(self, site: SiteConfig, article: ArticleInput) -> PublishResult:
        self.published.append(article)
        return PublishResult(success=True, remote_id=len(self.published))

    def fetch_stats(self, site: SiteConfig) -> StatsSnapshot:
        return StatsSnapshot(total_posts=len(self.published))

    def fetch_posts(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        return ContentListing.empty()

    def fetch_post(self, site: SiteConfig, post_id: str | int) -> ContentPage | None:
        return None

    def fetch_pages(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        return ContentListing.empty()

    def fetch_page(self, site: SiteConfig, page_id: str | int) -> ContentPage | None:
        return None


class TestResolve:
    """Site types resolve to adapters."""

    @pytest.mark.parametrize(
        ("site_type", "cls"),
        [
            ("wordpress", WordPressConnector),
            ("api", GenericApiConnector),
            ("git", GitConnector),
        ],
    )
    def test_builtin_types(
        self, factory: ConnectorFactory, site_type: str, cls: type
    ) -> None:
        connector = factory.resolve(SiteConfig(type=site_type, base_url="https://x"))
        assert isinstance(connector, cls)
        assert isinstance(connector, SiteConnector)

    def test_registered_types(self, factory: ConnectorFactory) -> None:
        assert factory.registered_types == ("wordpress", "api", "git")
        assert factory.has_connector("git")
        assert not factory.has_connector("ghost")

    def test_instances_are_cached(self, factory: ConnectorFactory) -> None:
        first = factory.resolve_type("wordpress")
        assert factory.resolve_type("wordpress") is first

    def test_concurrent_resolution_builds_once(
        self, factory: ConnectorFactory
    ) -> None:
        results: list[SiteConnector] = []

        def worker() -> None:
            results.append(factory.resolve_type("git"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len({id(connector) for connector in results}) == 1

    def test_settings_reach_adapters(
        self, executor: RequestExecutor, settings: Settings
    ) -> None:
        custom = settings.model_copy(
            update={
                "wordpress": settings.wordpress.model_copy(
                    update={"namespace": "autre/v2"}
                )
            }
        )
        connector = ConnectorFactory(executor, custom).resolve_type("wordpress")
        assert isinstance(connector, WordPressConnector)
        site = SiteConfig(type="wordpress", base_url="https://b.test")
        assert connector.endpoint(site, "stats").endswith("/wp-json/autre/v2/stats")

    def test_unknown_type_raises_without_requests(
        self, factory: ConnectorFactory
    ) -> None:
        site = SiteConfig(type="ghost", base_url="https://ghost.test")
        with respx.mock(assert_all_called=False) as router:
            with pytest.raises(ConnectorConfigurationError) as info:
                factory.resolve(site)
            assert router.calls.call_count == 0
        message = str(info.value)
        assert "'ghost'" in message
        assert "wordpress" in message


class TestCatalog:
    """The catalog lists every registered descriptor."""

    def test_catalog_order(self, factory: ConnectorFactory) -> None:
        assert [d.type for d in factory.catalog()] == ["wordpress", "api", "git"]

    def test_configuration_fields(self, factory: ConnectorFactory) -> None:
        names = [field.name for field in factory.configuration_fields("api")]
        assert names[:3] == ["url", "apiToken", "authType"]

    def test_configuration_fields_unknown_type(
        self, factory: ConnectorFactory
    ) -> None:
        with pytest.raises(ConnectorConfigurationError):
            factory.configuration_fields("ghost")


class TestValidate:
    """Sites are validated against their adapter's schema."""

    def test_valid_wordpress_site(
        self, factory: ConnectorFactory, wordpress_site: SiteConfig
    ) -> None:
        assert factory.validate(wordpress_site) == []

    def test_api_site_requires_auth_type(self, factory: ConnectorFactory) -> None:
        site = SiteConfig(type="api", base_url="https://api.test", api_token="t")
        problems = factory.validate(site)
        assert len(problems) == 1
        assert problems[0].startswith("authType")

    def test_git_site_rejects_unknown_provider(
        self, factory: ConnectorFactory, github_site: SiteConfig
    ) -> None:
        site = github_site.model_copy(
            update={"config": {**github_site.config, "provider": "bitbucket"}}
        )
        assert any("provider" in p for p in factory.validate(site))

    def test_unknown_type(self, factory: ConnectorFactory) -> None:
        site = SiteConfig(type="ghost", base_url="https://ghost.test")
        assert factory.validate(site)[0].startswith("type: unknown connector type")


class TestWithConnector:
    """Registries are extended by building a new factory."""

    def test_adds_type_without_mutating(self, factory: ConnectorFactory) -> None:
        echo = EchoConnector()
        extended = factory.with_connector(
            EchoConnector.descriptor, lambda _executor, _settings: echo
        )
        assert extended.registered_types == ("wordpress", "api", "git", "echo")
        assert not factory.has_connector("echo")
        assert extended.executor is factory.executor

        site = SiteConfig(type="echo", base_url="memory://")
        connector = extended.resolve(site)
        result = connector.publish(site, ArticleInput(title="T", content="C"))
        assert result.remote_id == 1
        assert connector.fetch_stats(site).total_posts == 1

    def test_replaces_existing_type(self, factory: ConnectorFactory) -> None:
        descriptor = EchoConnector.descriptor.model_copy(update={"type": "git"})
        echo = EchoConnector()
        replaced = factory.with_connector(descriptor, lambda _e, _s: echo)
        assert replaced.resolve_type("git") is echo
        assert replaced.registered_types == ("wordpress", "api", "git")


class TestFromSettings:
    """Factories can build their own executor."""

    def test_executor_follows_settings(self, settings: Settings) -> None:
        custom = settings.model_copy(
            update={
                "connector": settings.connector.model_copy(update={"max_attempts": 5})
            }
        )
        with ConnectorFactory.from_settings(custom) as factory:
            assert factory.executor.max_attempts == 5
            assert factory.settings is custom
