"""Data contract shared by every connector.

Site records are read-only configuration handed in by the caller; every
other model is a transient value built per call and never mutated after
construction.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ArticleStatus(StrEnum):
    """Publication status requested for an article."""

    DRAFT = "draft"
    PUBLISH = "publish"
    PENDING = "pending"
    PRIVATE = "private"


class ContentType(StrEnum):
    """Kind of remote content item."""

    POST = "post"
    PAGE = "page"


class Feature(StrEnum):
    """Capabilities an adapter may declare."""

    PUBLISH = "publish"
    STATS = "stats"
    CATEGORIES = "categories"
    TAGS = "tags"
    MEDIA = "media"
    SCHEDULE = "schedule"
    DRAFT = "draft"
    CUSTOM_FIELDS = "custom_fields"


def coerce_count(value: Any) -> int:
    """Coerce a remote counter to a non-negative int, defaulting to 0."""
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def optional_str(value: Any) -> str | None:
    """Stringify a remote scalar, mapping ``None`` and blanks to ``None``."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def count_pages(total: int, per_page: int) -> int:
    """Number of pages needed to show ``total`` items ``per_page`` at a time."""
    if total <= 0 or per_page <= 0:
        return 0
    return math.ceil(total / per_page)


# ---------------------------------------------------------------------------
# Site configuration
# ---------------------------------------------------------------------------


class SiteConfig(BaseModel):
    """A registered remote site, owned and persisted by the caller."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    type: str
    base_url: str = Field(validation_alias=AliasChoices("base_url", "baseUrl", "url"))
    api_token: str = Field(
        default="",
        validation_alias=AliasChoices("api_token", "apiToken", "token"),
        repr=False,
    )
    config: dict[str, str | list[str]] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.base_url

    def option(self, key: str, default: str | None = None) -> str | None:
        """Return a scalar config value, treating blank strings as unset."""
        value = self.config.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class ArticleInput(BaseModel):
    """An article to publish. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    status: ArticleStatus = ArticleStatus.DRAFT
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    excerpt: str | None = None
    featured_image_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "featured_image_url", "featuredImageUrl", "featured_image"
        ),
    )

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def is_draft(self) -> bool:
        return self.status == ArticleStatus.DRAFT

    def to_payload(self) -> dict[str, Any]:
        """Return the snake_case wire body expected by the WordPress plugin."""
        return {
            "title": self.title,
            "content": self.content,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "status": self.status.value,
            "excerpt": self.excerpt,
            "featured_image": self.featured_image_url,
        }


class PublishResult(BaseModel):
    """Outcome of one publish call. Persisting it is the caller's job."""

    model_config = ConfigDict(frozen=True)

    success: bool
    remote_id: str | int | None = None
    url: str | None = None
    message: str = ""

    @classmethod
    def failed(cls, message: str) -> PublishResult:
        return cls(success=False, message=message)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class StatsSnapshot(BaseModel):
    """Aggregate counters for a site. Always fully populated."""

    model_config = ConfigDict(frozen=True)

    total_posts: int = Field(default=0, ge=0)
    total_categories: int = Field(default=0, ge=0)
    total_tags: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)
    total_comments: int = Field(default=0, ge=0)
    total_users: int = Field(default=0, ge=0)
    site_title: str | None = None
    site_description: str | None = None
    platform_version: str | None = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def empty(cls, site_title: str | None = None) -> StatsSnapshot:
        """Zeroed snapshot carrying only the site's display name."""
        return cls(site_title=site_title)

    @classmethod
    def from_wordpress(cls, payload: dict[str, Any]) -> StatsSnapshot:
        """Map the plugin's snake_case stats payload one to one."""
        return cls(
            total_posts=coerce_count(payload.get("total_posts")),
            total_categories=coerce_count(payload.get("total_categories")),
            total_tags=coerce_count(payload.get("total_tags")),
            total_pages=coerce_count(payload.get("total_pages")),
            total_comments=coerce_count(payload.get("total_comments")),
            total_users=coerce_count(payload.get("total_users")),
            site_title=optional_str(payload.get("site_title")),
            site_description=optional_str(payload.get("site_description")),
            platform_version=optional_str(payload.get("wordpress_version")),
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.total_posts == 0
            and self.total_categories == 0
            and self.total_tags == 0
        )


# ---------------------------------------------------------------------------
# Content listings
# ---------------------------------------------------------------------------


class ListFilters(BaseModel):
    """Pagination and filtering for post/page listings (1-indexed)."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=1)
    status: str = "any"
    search: str = ""

    def clamp(self, max_per_page: int) -> ListFilters:
        """Return a copy whose ``per_page`` respects a provider limit."""
        if self.per_page <= max_per_page:
            return self
        return self.model_copy(update={"per_page": max_per_page})


class ContentPage(BaseModel):
    """A post or page normalized from any provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    slug: str = ""
    excerpt: str = ""
    content: str = ""
    status: str = "publish"
    url: str = ""
    date: str | None = None
    modified_date: str | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    type: ContentType = ContentType.POST

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)


class ContentListing(BaseModel):
    """One page of a listing plus totals across all pages."""

    model_config = ConfigDict(frozen=True)

    items: list[ContentPage] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page_count: int = Field(default=0, ge=0)

    @classmethod
    def empty(cls) -> ContentListing:
        return cls()


class Term(BaseModel):
    """A category or tag defined on the remote site."""

    id: int | str
    name: str
    slug: str = ""
    count: int = Field(default=0, ge=0)


class HealthReport(BaseModel):
    """Liveness and version probe result."""

    status: str
    plugin_version: str | None = None
    platform_version: str | None = None
    php_version: str | None = None
    timestamp: str | None = None


# ---------------------------------------------------------------------------
# Connector catalog
# ---------------------------------------------------------------------------

FieldKind = Literal["url", "password", "text", "select"]


class ConfigurationField(BaseModel):
    """One entry of an adapter's configuration schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    kind: FieldKind
    required: bool = False
    help: str = ""
    placeholder: str = ""
    options: dict[str, str] = Field(default_factory=dict)


class ConnectorDescriptor(BaseModel):
    """Static metadata for one connector type."""

    model_config = ConfigDict(frozen=True)

    type: str
    display_name: str
    description: str
    icon: str
    configuration_fields: tuple[ConfigurationField, ...] = ()
    features: frozenset[Feature] = frozenset()

    def validate_site(self, site: SiteConfig) -> list[str]:
        """Check a site against this adapter's own configuration schema.

        ``url`` and ``apiToken`` map to the site's base URL and token; every
        other field is read from the site's ``config`` mapping.

        Returns:
            Human-readable problems; empty when the site is valid.
        """
        problems: list[str] = []
        if site.type != self.type:
            problems.append(f"type: expected {self.type!r}, got {site.type!r}")

        for field in self.configuration_fields:
            if field.name == "url":
                value: str | None = site.base_url or None
            elif field.name == "apiToken":
                value = site.api_token or None
            else:
                value = site.option(field.name)

            if value is None:
                if field.required:
                    problems.append(f"{field.name}: {field.label} is required")
                continue
            if field.kind == "select" and field.options and value not in field.options:
                allowed = ", ".join(field.options)
                problems.append(f"{field.name}: {value!r} is not one of {allowed}")
        return problems
