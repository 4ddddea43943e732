"""WordPress adapter for sites running the platform's companion plugin.

Every call goes to ``<base_url>/wp-json/<namespace>/<path>`` with a
Bearer token. The plugin exposes ``stats``, ``publish``, ``health``,
``categories``, ``tags``, ``posts[/{id}]`` and ``pages[/{id}]``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from site_connectors.config import WordPressSettings
from site_connectors.connectors.base import (
    as_optional_text,
    as_text,
    first_present,
    join_url,
    supports_feature,
    term_names,
)
from site_connectors.exceptions import (
    EndpointNotFoundError,
    InvalidResponseError,
    SiteConnectorError,
)
from site_connectors.logging import site_logging_context
from site_connectors.models import (
    ConfigurationField,
    ConnectorDescriptor,
    ContentListing,
    ContentPage,
    ContentType,
    Feature,
    HealthReport,
    ListFilters,
    PublishResult,
    StatsSnapshot,
    Term,
    coerce_count,
)

if TYPE_CHECKING:
    from site_connectors.executor import RequestExecutor
    from site_connectors.models import ArticleInput, SiteConfig

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

WORDPRESS_DESCRIPTOR = ConnectorDescriptor(
    type="wordpress",
    display_name="WordPress",
    description=(
        "Connectez vos sites WordPress via le plugin. Publiez des articles, "
        "gerez les categories et suivez les statistiques."
    ),
    icon="wordpress",
    configuration_fields=(
        ConfigurationField(
            name="url",
            label="URL du site",
            kind="url",
            required=True,
            placeholder="https://monsite.com",
            help="L'URL de votre site WordPress (sans slash final)",
        ),
        ConfigurationField(
            name="apiToken",
            label="Token API",
            kind="password",
            required=True,
            placeholder="Votre token API",
            help="Token genere par le plugin sur votre site WordPress",
        ),
    ),
    features=frozenset(
        {
            Feature.PUBLISH,
            Feature.STATS,
            Feature.CATEGORIES,
            Feature.TAGS,
            Feature.MEDIA,
            Feature.SCHEDULE,
            Feature.DRAFT,
        }
    ),
)


class WordPressConnector:
    """Adapter for the WordPress companion plugin's REST API."""

    descriptor = WORDPRESS_DESCRIPTOR

    def __init__(
        self,
        executor: RequestExecutor,
        settings: WordPressSettings | None = None,
    ) -> None:
        self._executor = executor
        self._settings = settings or WordPressSettings()

    def supports(self, feature: Feature | str) -> bool:
        return supports_feature(self.descriptor, feature)

    # -- request helpers ----------------------------------------------------

    def endpoint(self, site: SiteConfig, path: str) -> str:
        """Absolute URL of a plugin endpoint for ``site``."""
        prefix = join_url(self._settings.rest_prefix, self._settings.namespace)
        return join_url(join_url(site.base_url, prefix), path)

    def _headers(self, site: SiteConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {site.api_token}"}

    def _get(
        self, site: SiteConfig, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        return self._executor.request_json(
            "GET", self.endpoint(site, path), headers=self._headers(site), params=params
        )

    def _get_object(
        self, site: SiteConfig, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        payload = self._get(site, path, params)
        if not isinstance(payload, dict):
            url = self.endpoint(site, path)
            raise InvalidResponseError(
                f"Expected a JSON object from {url}, got {type(payload).__name__}",
                url=url,
            )
        return payload

    # -- contract -------------------------------------------------------------

    def test_connection(self, site: SiteConfig) -> bool:
        with site_logging_context(site, "test_connection") as log:
            try:
                self.fetch_stats_strict(site)
            except (SiteConnectorError, ValidationError) as exc:
                log.warning("connection_test_failed", error=str(exc))
                return False
            return True

    def publish(self, site: SiteConfig, article: ArticleInput) -> PublishResult:
        """Publish through the plugin's ``publish`` endpoint.

        Raises:
            ConnectorRequestError: When the plugin call fails; nothing was
                created remotely in that case.
        """
        with site_logging_context(site, "publish", title=article.title) as log:
            log.info("publishing_article")
            response = self._executor.request_json(
                "POST",
                self.endpoint(site, "publish"),
                headers=self._headers(site),
                json=article.to_payload(),
            )
            if not isinstance(response, dict):
                response = {}
            result = PublishResult(
                success=True,
                remote_id=response.get("post_id"),
                url=response.get("post_url"),
                message="Article publie avec succes",
            )
            log.info("article_published", remote_id=result.remote_id)
            return result

    def fetch_stats_strict(self, site: SiteConfig) -> StatsSnapshot:
        """Fetch stats, surfacing transport and auth failures.

        Raises:
            ConnectorRequestError: Classified failure of the stats call.
        """
        return StatsSnapshot.from_wordpress(self._get_object(site, "stats"))

    def fetch_stats(self, site: SiteConfig) -> StatsSnapshot:
        with site_logging_context(site, "fetch_stats") as log:
            try:
                return self.fetch_stats_strict(site)
            except (SiteConnectorError, ValidationError) as exc:
                log.error("stats_fetch_failed", error=str(exc))
                return StatsSnapshot.empty(site.display_name)

    def check_health(self, site: SiteConfig) -> HealthReport:
        """Probe the plugin's ``health`` endpoint for liveness and versions."""
        payload = self._get_object(site, "health")
        return HealthReport(
            status=as_text(payload.get("status")) or "unknown",
            plugin_version=as_optional_text(payload.get("plugin_version")),
            platform_version=as_optional_text(payload.get("wordpress_version")),
            php_version=as_optional_text(payload.get("php_version")),
            timestamp=as_optional_text(payload.get("timestamp")),
        )

    def fetch_categories(self, site: SiteConfig) -> list[Term]:
        return self._fetch_terms(site, "categories")

    def fetch_tags(self, site: SiteConfig) -> list[Term]:
        return self._fetch_terms(site, "tags")

    def fetch_posts(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        with site_logging_context(site, "fetch_posts"):
            payload = self._get_object(site, "posts", self._list_params(filters))
            return ContentListing(
                items=self._items(payload.get("posts"), ContentType.POST),
                total=coerce_count(payload.get("total")),
                page_count=coerce_count(payload.get("pages")),
            )

    def fetch_pages(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        # The plugin names the page count "pages" on /posts but "pages_count"
        # on /pages (where "pages" holds the items). Both are kept as sent.
        with site_logging_context(site, "fetch_pages"):
            payload = self._get_object(site, "pages", self._list_params(filters))
            return ContentListing(
                items=self._items(payload.get("pages"), ContentType.PAGE),
                total=coerce_count(payload.get("total")),
                page_count=coerce_count(payload.get("pages_count")),
            )

    def fetch_post(self, site: SiteConfig, post_id: str | int) -> ContentPage | None:
        return self._fetch_item(site, f"posts/{post_id}", ContentType.POST)

    def fetch_page(self, site: SiteConfig, page_id: str | int) -> ContentPage | None:
        return self._fetch_item(site, f"pages/{page_id}", ContentType.PAGE)

    # -- internals ------------------------------------------------------------

    def _list_params(self, filters: ListFilters | None) -> dict[str, Any]:
        filters = (filters or ListFilters()).clamp(self._settings.max_per_page)
        return {
            "page": filters.page,
            "per_page": filters.per_page,
            "status": filters.status,
            "search": filters.search,
        }

    def _fetch_item(
        self, site: SiteConfig, path: str, content_type: ContentType
    ) -> ContentPage | None:
        with site_logging_context(site, f"fetch_{content_type.value}") as log:
            try:
                payload = self._get_object(site, path)
            except EndpointNotFoundError:
                log.info("content_not_found", path=path)
                return None
            return self._to_content(payload, content_type)

    def _fetch_terms(self, site: SiteConfig, path: str) -> list[Term]:
        with site_logging_context(site, f"fetch_{path}") as log:
            try:
                payload = self._get(site, path)
            except SiteConnectorError as exc:
                log.warning("terms_fetch_failed", error=str(exc))
                return []
            if not isinstance(payload, list):
                return []
            return [
                Term(
                    id=item.get("id") or item.get("name"),
                    name=as_text(item.get("name")),
                    slug=as_text(item.get("slug")),
                    count=coerce_count(item.get("count")),
                )
                for item in payload
                if isinstance(item, dict) and item.get("name")
            ]

    def _items(self, raw: Any, content_type: ContentType) -> list[ContentPage]:
        if not isinstance(raw, list):
            return []
        return [
            self._to_content(item, content_type)
            for item in raw
            if isinstance(item, dict)
        ]

    @staticmethod
    def _to_content(item: dict[str, Any], content_type: ContentType) -> ContentPage:
        return ContentPage(
            id=as_text(item.get("id")),
            title=as_text(item.get("title")),
            slug=as_text(item.get("slug")),
            excerpt=as_text(item.get("excerpt")),
            content=as_text(item.get("content")),
            status=as_text(item.get("status")) or "publish",
            url=as_text(first_present(item, ("url", "link"))),
            date=as_optional_text(item.get("date")),
            modified_date=as_optional_text(item.get("modified")),
            categories=term_names(item.get("categories")),
            tags=term_names(item.get("tags")),
            type=content_type,
        )
