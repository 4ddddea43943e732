"""Adapter for arbitrary user-configured REST APIs.

The remote shape is unknown when the site is configured, so every field
is read through an explicit fallback chain of candidate keys (first key
present wins). The chains below are the whole normalization contract.
"""

from __future__ import annotations

import base64
import uuid
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from site_connectors.config import GenericApiSettings
from site_connectors.connectors.base import (
    as_optional_text,
    as_text,
    first_present,
    join_url,
    supports_feature,
    term_names,
)
from site_connectors.exceptions import EndpointNotFoundError, SiteConnectorError
from site_connectors.logging import site_logging_context
from site_connectors.models import (
    ConfigurationField,
    ConnectorDescriptor,
    ContentListing,
    ContentPage,
    ContentType,
    Feature,
    ListFilters,
    PublishResult,
    StatsSnapshot,
    coerce_count,
    count_pages,
    optional_str,
)

if TYPE_CHECKING:
    from site_connectors.executor import RequestExecutor
    from site_connectors.models import ArticleInput, SiteConfig

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Fallback chains
# ---------------------------------------------------------------------------

ID_KEYS = ("id", "_id", "uuid")
TITLE_KEYS = ("title", "name")
SLUG_KEYS = ("slug",)
EXCERPT_KEYS = ("excerpt", "description", "summary")
CONTENT_KEYS = ("content", "body")
URL_KEYS = ("url", "link")
DATE_KEYS = ("date", "created_at", "createdAt")
MODIFIED_KEYS = ("modified", "updated_at", "updatedAt")
LIST_WRAPPER_KEYS = ("data", "posts", "items")

STATS_POSTS_KEYS = ("posts", "total_posts", "count")
STATS_CATEGORIES_KEYS = ("categories", "total_categories")
STATS_TAGS_KEYS = ("tags", "total_tags")
STATS_TITLE_KEYS = ("title", "site_title")
STATS_VERSION_KEYS = ("version",)

DEFAULT_PUBLISH_ENDPOINT = "/posts"
DEFAULT_POSTS_ENDPOINT = "/posts"
DEFAULT_STATS_ENDPOINT = "/stats"
DEFAULT_HEALTH_ENDPOINT = "/health"

GENERIC_API_DESCRIPTOR = ConnectorDescriptor(
    type="api",
    display_name="API REST",
    description=(
        "Connectez n'importe quel CMS ou application via une API REST. "
        "Configurez vos endpoints personnalises."
    ),
    icon="api",
    configuration_fields=(
        ConfigurationField(
            name="url",
            label="URL de base de l'API",
            kind="url",
            required=True,
            placeholder="https://api.monsite.com/v1",
            help="L'URL de base de votre API REST",
        ),
        ConfigurationField(
            name="apiToken",
            label="Token d'authentification",
            kind="password",
            required=True,
            placeholder="Bearer token ou API key",
            help="Token d'authentification pour l'API",
        ),
        ConfigurationField(
            name="authType",
            label="Type d'authentification",
            kind="select",
            required=True,
            options={
                "bearer": "Bearer Token",
                "api_key": "API Key (header)",
                "basic": "Basic Auth",
            },
            help="Methode d'authentification utilisee par l'API",
        ),
        ConfigurationField(
            name="publishEndpoint",
            label="Endpoint de publication",
            kind="text",
            placeholder=DEFAULT_PUBLISH_ENDPOINT,
            help="Chemin relatif pour publier du contenu (POST)",
        ),
        ConfigurationField(
            name="postsEndpoint",
            label="Endpoint des articles",
            kind="text",
            placeholder=DEFAULT_POSTS_ENDPOINT,
            help="Chemin relatif pour lister les articles (GET)",
        ),
        ConfigurationField(
            name="statsEndpoint",
            label="Endpoint de statistiques",
            kind="text",
            placeholder=DEFAULT_STATS_ENDPOINT,
            help="Chemin relatif pour recuperer les statistiques (GET)",
        ),
    ),
    features=frozenset({Feature.PUBLISH, Feature.STATS}),
)


def auth_headers(site: SiteConfig) -> dict[str, str]:
    """Build the auth header selected by the site's ``authType``.

    Unknown or missing values fall back to a Bearer token.
    """
    token = site.api_token
    match site.option("authType", "bearer"):
        case "api_key":
            return {"X-API-Key": token}
        case "basic":
            encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}
        case _:
            return {"Authorization": f"Bearer {token}"}


def unwrap_items(payload: Any) -> list[dict[str, Any]]:
    """Extract the item list from ``data``/``posts``/``items`` or the payload."""
    items: Any = payload
    if isinstance(payload, dict):
        items = first_present(payload, LIST_WRAPPER_KEYS, payload)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class GenericApiConnector:
    """Adapter for a REST API whose endpoints and auth scheme are per-site."""

    descriptor = GENERIC_API_DESCRIPTOR

    def __init__(
        self,
        executor: RequestExecutor,
        settings: GenericApiSettings | None = None,
    ) -> None:
        self._executor = executor
        self._settings = settings or GenericApiSettings()

    def supports(self, feature: Feature | str) -> bool:
        return supports_feature(self.descriptor, feature)

    def _url(self, site: SiteConfig, key: str, default: str) -> str:
        return join_url(site.base_url, site.option(key, default) or default)

    # -- contract -------------------------------------------------------------

    def test_connection(self, site: SiteConfig) -> bool:
        url = self._url(site, "statsEndpoint", DEFAULT_HEALTH_ENDPOINT)
        with site_logging_context(site, "test_connection") as log:
            try:
                self._executor.request_json("GET", url, headers=auth_headers(site))
            except SiteConnectorError as exc:
                log.warning("connection_test_failed", url=url, error=str(exc))
                return False
            return True

    def publish(self, site: SiteConfig, article: ArticleInput) -> PublishResult:
        """POST the article to the configured publish endpoint.

        The created id and URL are read from the top level of the response,
        or from a ``data`` wrapper when the API nests its payload.

        Raises:
            ConnectorRequestError: When the remote call fails.
        """
        url = self._url(site, "publishEndpoint", DEFAULT_PUBLISH_ENDPOINT)
        with site_logging_context(site, "publish", title=article.title) as log:
            log.info("publishing_article", url=url)
            response = self._executor.request_json(
                "POST",
                url,
                headers=auth_headers(site),
                json={
                    "title": article.title,
                    "content": article.content,
                    "excerpt": article.excerpt,
                    "status": article.status.value,
                    "categories": list(article.categories),
                    "tags": list(article.tags),
                },
            )
            body = response if isinstance(response, dict) else {}
            nested = body.get("data") if isinstance(body.get("data"), dict) else {}
            result = PublishResult(
                success=True,
                remote_id=first_present(body, ("id",), nested.get("id")),
                url=first_present(body, ("url",), nested.get("url")),
                message="Contenu publie avec succes",
            )
            log.info("article_published", remote_id=result.remote_id)
            return result

    def fetch_stats_strict(self, site: SiteConfig) -> StatsSnapshot:
        """Fetch stats, surfacing transport and auth failures.

        Raises:
            ConnectorRequestError: Classified failure of the stats call.
        """
        url = self._url(site, "statsEndpoint", DEFAULT_STATS_ENDPOINT)
        payload = self._executor.request_json("GET", url, headers=auth_headers(site))
        if not isinstance(payload, dict):
            payload = {}
        return StatsSnapshot(
            total_posts=coerce_count(first_present(payload, STATS_POSTS_KEYS)),
            total_categories=coerce_count(
                first_present(payload, STATS_CATEGORIES_KEYS)
            ),
            total_tags=coerce_count(first_present(payload, STATS_TAGS_KEYS)),
            site_title=optional_str(
                first_present(payload, STATS_TITLE_KEYS, site.display_name)
            ),
            platform_version=optional_str(first_present(payload, STATS_VERSION_KEYS)),
        )

    def fetch_stats(self, site: SiteConfig) -> StatsSnapshot:
        with site_logging_context(site, "fetch_stats") as log:
            try:
                return self.fetch_stats_strict(site)
            except (SiteConnectorError, ValidationError) as exc:
                log.error("stats_fetch_failed", error=str(exc))
                return StatsSnapshot.empty(site.display_name)

    def fetch_posts(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        """List posts from the configured posts endpoint.

        Only ``page`` and ``per_page`` are forwarded; ``status`` and
        ``search`` have no standard spelling across APIs and are ignored.
        """
        filters = (filters or ListFilters()).clamp(self._settings.max_per_page)
        url = self._url(site, "postsEndpoint", DEFAULT_POSTS_ENDPOINT)
        with site_logging_context(site, "fetch_posts"):
            payload = self._executor.request_json(
                "GET",
                url,
                headers=auth_headers(site),
                params={"page": filters.page, "per_page": filters.per_page},
            )
            raw_items = unwrap_items(payload)
            items = [self._to_content(item) for item in raw_items]

            meta: dict[str, Any] = {}
            if isinstance(payload, dict) and isinstance(payload.get("meta"), dict):
                meta = payload["meta"]
            top = payload if isinstance(payload, dict) else {}

            total = coerce_count(
                first_present(top, ("total",), meta.get("total", len(raw_items)))
            )
            pages = first_present(top, ("pages",), meta.get("pages"))
            page_count = (
                coerce_count(pages)
                if pages is not None
                else count_pages(total, filters.per_page)
            )
            return ContentListing(items=items, total=total, page_count=page_count)

    def fetch_post(self, site: SiteConfig, post_id: str | int) -> ContentPage | None:
        url = join_url(
            self._url(site, "postsEndpoint", DEFAULT_POSTS_ENDPOINT), str(post_id)
        )
        with site_logging_context(site, "fetch_post", post_id=str(post_id)) as log:
            try:
                payload = self._executor.request_json(
                    "GET", url, headers=auth_headers(site)
                )
            except EndpointNotFoundError:
                log.info("content_not_found", url=url)
                return None
            if not isinstance(payload, dict):
                return None
            nested = payload.get("data")
            item = nested if isinstance(nested, dict) else payload
            return self._to_content(item, fallback_id=str(post_id))

    def fetch_pages(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        # Generic APIs have no standard post/page distinction.
        return ContentListing.empty()

    def fetch_page(self, site: SiteConfig, page_id: str | int) -> ContentPage | None:
        return None

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _to_content(item: dict[str, Any], fallback_id: str = "") -> ContentPage:
        remote_id = first_present(item, ID_KEYS)
        if remote_id is None:
            remote_id = fallback_id or f"generated-{uuid.uuid4().hex[:13]}"
        return ContentPage(
            id=remote_id,
            title=as_text(first_present(item, TITLE_KEYS)),
            slug=as_text(first_present(item, SLUG_KEYS)),
            excerpt=as_text(first_present(item, EXCERPT_KEYS)),
            content=as_text(first_present(item, CONTENT_KEYS)),
            status=as_text(item.get("status")) or "publish",
            url=as_text(first_present(item, URL_KEYS)),
            date=as_optional_text(first_present(item, DATE_KEYS)),
            modified_date=as_optional_text(first_present(item, MODIFIED_KEYS)),
            categories=term_names(item.get("categories")),
            tags=term_names(item.get("tags")),
            type=ContentType.POST,
        )
