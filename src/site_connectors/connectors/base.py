"""Connector contract and helpers shared by the provider adapters.

Adapters are independent classes that satisfy the :class:`SiteConnector`
protocol; they share no base class. Each holds a reference to the shared
:class:`~site_connectors.executor.RequestExecutor` and a static
:class:`~site_connectors.models.ConnectorDescriptor`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from site_connectors.models import Feature

if TYPE_CHECKING:
    from site_connectors.models import (
        ArticleInput,
        ConnectorDescriptor,
        ContentListing,
        ContentPage,
        ListFilters,
        PublishResult,
        SiteConfig,
        StatsSnapshot,
    )


@runtime_checkable
class SiteConnector(Protocol):
    """Capabilities every provider adapter implements."""

    descriptor: ConnectorDescriptor

    def supports(self, feature: Feature | str) -> bool:
        """Static capability query, a pure function of the adapter type."""
        ...

    def test_connection(self, site: SiteConfig) -> bool:
        """Best-effort reachability and auth probe. Never raises."""
        ...

    def publish(self, site: SiteConfig, article: ArticleInput) -> PublishResult:
        """Create one remote content item from ``article``."""
        ...

    def fetch_stats(self, site: SiteConfig) -> StatsSnapshot:
        """Aggregate counters; degrades to a zeroed snapshot. Never raises."""
        ...

    def fetch_posts(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        """One page of posts with totals."""
        ...

    def fetch_post(self, site: SiteConfig, post_id: str | int) -> ContentPage | None:
        """A single post, or ``None`` when it does not exist."""
        ...

    def fetch_pages(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        """One page of pages; empty for adapters without a page concept."""
        ...

    def fetch_page(self, site: SiteConfig, page_id: str | int) -> ContentPage | None:
        """A single page, or ``None`` when it does not exist."""
        ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def supports_feature(descriptor: ConnectorDescriptor, feature: Feature | str) -> bool:
    """Whether ``feature`` is in the descriptor's fixed feature set."""
    try:
        return Feature(feature) in descriptor.features
    except ValueError:
        return False


def join_url(base: str, path: str) -> str:
    """Join a base URL and a relative path with exactly one slash."""
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def first_present(
    data: Mapping[str, Any], keys: Sequence[str], default: Any = None
) -> Any:
    """Return the value of the first key present and not ``None``.

    This is the fallback chain used to normalize heterogeneous payloads:
    candidates are tried in the given order and the first hit wins.
    """
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def as_text(value: Any) -> str:
    """Render a scalar payload field as text.

    Handles WordPress-style ``{"rendered": "..."}`` objects and ``None``.
    """
    if value is None:
        return ""
    if isinstance(value, Mapping):
        return as_text(value.get("rendered"))
    return str(value)


def as_optional_text(value: Any) -> str | None:
    text = as_text(value)
    return text or None


def term_names(value: Any) -> list[str]:
    """Normalize a categories/tags field into a list of names.

    Accepts lists of strings, lists of ``{"name": ...}`` objects and
    comma-separated strings.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Sequence):
        names: list[str] = []
        for item in value:
            if isinstance(item, Mapping):
                name = item.get("name")
                if name:
                    names.append(str(name))
            elif item is not None and str(item).strip():
                names.append(str(item).strip())
        return names
    return []
