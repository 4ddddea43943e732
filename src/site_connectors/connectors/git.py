"""Git-backed static-site adapter (Hugo, Jekyll, Gatsby, Astro, ...).

Publishing renders the article as Markdown with generator-specific
frontmatter and commits it as a new file through the hosting provider's
content API. The commit is a single request and is not transactional: a
failure after the request was sent may still leave a commit behind, and
the adapter cannot detect or roll it back.

Read paths list the content directory, fetch every ``.md`` file one by
one and rebuild :class:`ContentPage` records from the frontmatter. Sorting
and pagination happen client-side. All read paths degrade to empty
results instead of raising.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

import structlog

from site_connectors.config import GitSettings
from site_connectors.connectors.base import first_present, join_url, supports_feature
from site_connectors.connectors.git_providers import (
    GitEntry,
    GitProvider,
    build_provider,
)
from site_connectors.exceptions import SiteConnectorError
from site_connectors.frontmatter import (
    DATE_KEYS,
    EXCERPT_KEYS,
    GENERATOR_LABELS,
    MODIFIED_KEYS,
    TITLE_KEYS,
    SiteGenerator,
    build_frontmatter,
    markdown_filename,
    render_markdown,
    slugify,
    split_frontmatter,
    split_terms,
    status_from,
)
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
    count_pages,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from site_connectors.executor import RequestExecutor
    from site_connectors.models import ArticleInput, SiteConfig

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

GIT_DESCRIPTOR = ConnectorDescriptor(
    type="git",
    display_name="Git / Sites Statiques",
    description=(
        "Publiez sur des sites statiques (Hugo, Jekyll, Gatsby, Astro) via Git. "
        "Les articles sont crees en Markdown et commites automatiquement."
    ),
    icon="git",
    configuration_fields=(
        ConfigurationField(
            name="url",
            label="URL du repository",
            kind="url",
            required=True,
            placeholder="https://github.com/user/repo",
            help="URL du repository Git (GitHub, GitLab)",
        ),
        ConfigurationField(
            name="apiToken",
            label="Token d'acces",
            kind="password",
            required=True,
            placeholder="ghp_xxxxxxxxxxxx",
            help="Personal Access Token avec droits d'ecriture sur le repo",
        ),
        ConfigurationField(
            name="provider",
            label="Provider Git",
            kind="select",
            required=True,
            options={"github": "GitHub", "gitlab": "GitLab"},
            help="Plateforme hebergeant votre repository",
        ),
        ConfigurationField(
            name="branch",
            label="Branche",
            kind="text",
            placeholder="main",
            help="Branche sur laquelle publier (defaut: main)",
        ),
        ConfigurationField(
            name="contentPath",
            label="Chemin du contenu",
            kind="text",
            placeholder="content/posts",
            help="Dossier ou creer les fichiers markdown",
        ),
        ConfigurationField(
            name="siteGenerator",
            label="Generateur de site",
            kind="select",
            options=GENERATOR_LABELS,
            help="Type de generateur pour adapter le format du frontmatter",
        ),
        ConfigurationField(
            name="siteUrl",
            label="URL du site publie",
            kind="url",
            placeholder="https://monblog.com",
            help="URL du site une fois deploye (pour les liens)",
        ),
        ConfigurationField(
            name="pagesPath",
            label="Chemin des pages",
            kind="text",
            placeholder="content/pages",
            help="Dossier des pages statiques (optionnel)",
        ),
        ConfigurationField(
            name="apiUrl",
            label="URL de l'API Git",
            kind="url",
            placeholder="https://gitlab.monentreprise.com/api/v4",
            help="Pour GitHub Enterprise ou GitLab auto-heberge (optionnel)",
        ),
    ),
    features=frozenset(
        {Feature.PUBLISH, Feature.CATEGORIES, Feature.TAGS, Feature.DRAFT}
    ),
)


_JEKYLL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _date_sort_key(page: ContentPage) -> datetime:
    """Newest first when used with ``reverse=True``; undated items sink."""
    if not page.date:
        return datetime.min.replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(page.date.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class GitConnector:
    """Adapter committing Markdown files to a GitHub or GitLab repository."""

    descriptor = GIT_DESCRIPTOR

    def __init__(
        self,
        executor: RequestExecutor,
        settings: GitSettings | None = None,
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._executor = executor
        self._settings = settings or GitSettings()
        self._now = now

    def supports(self, feature: Feature | str) -> bool:
        return supports_feature(self.descriptor, feature)

    # -- site options ---------------------------------------------------------

    def provider(self, site: SiteConfig) -> GitProvider:
        return build_provider(site, self._executor, self._settings)

    def generator(self, site: SiteConfig) -> SiteGenerator:
        return SiteGenerator.parse(
            site.option("siteGenerator"), self._settings.default_generator
        )

    def content_path(self, site: SiteConfig) -> str:
        path = site.option("contentPath", self._settings.default_content_path)
        return (path or self._settings.default_content_path).strip("/")

    def article_url(self, site: SiteConfig, slug: str) -> str:
        """Public URL of a post, ``<siteUrl>/posts/<slug>/``; empty if unset."""
        site_url = site.option("siteUrl")
        if not site_url:
            return ""
        return join_url(site_url, f"posts/{slug}/")

    # -- contract -------------------------------------------------------------

    def test_connection(self, site: SiteConfig) -> bool:
        with site_logging_context(site, "test_connection") as log:
            try:
                return bool(self.provider(site).repo_info())
            except SiteConnectorError as exc:
                log.warning("connection_test_failed", error=str(exc))
                return False

    def publish(self, site: SiteConfig, article: ArticleInput) -> PublishResult:
        """Commit ``article`` as a new Markdown file.

        Failures, including an unsupported provider, are reported as
        ``success=False`` with the underlying message rather than raised.
        """
        generator = self.generator(site)
        published_at = self._now()
        filename = markdown_filename(article.title, generator, published_at)
        file_path = f"{self.content_path(site)}/{filename}"

        with site_logging_context(
            site, "publish", title=article.title, path=file_path
        ) as log:
            try:
                provider = self.provider(site)
                log.info("publishing_article", provider=provider.name)
                document = render_markdown(
                    build_frontmatter(article, generator, published_at),
                    article.content,
                )
                commit = provider.create_file(
                    file_path, document, f"Add: {article.title}"
                )
            except SiteConnectorError as exc:
                log.error("publish_failed", error=str(exc))
                return PublishResult.failed(str(exc))

            log.info("article_committed", remote_id=commit.id)
            return PublishResult(
                success=True,
                remote_id=commit.id,
                url=self.article_url(site, slugify(article.title)) or None,
                message="Article commite avec succes",
            )

    def fetch_stats(self, site: SiteConfig) -> StatsSnapshot:
        with site_logging_context(site, "fetch_stats") as log:
            try:
                provider = self.provider(site)
                info = provider.repo_info()
                entries = provider.list_directory(self.content_path(site))
            except SiteConnectorError as exc:
                log.error("stats_fetch_failed", error=str(exc))
                return StatsSnapshot.empty(site.display_name)
            return StatsSnapshot(
                total_posts=sum(1 for entry in entries if entry.is_markdown),
                site_title=_text(info.get("name")) or site.display_name,
                site_description=_text(info.get("description")) or None,
            )

    def fetch_posts(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        return self._list(site, self.content_path(site), ContentType.POST, filters)

    def fetch_post(self, site: SiteConfig, post_id: str | int) -> ContentPage | None:
        """Fetch one post by file name (``<slug>.md``)."""
        return self._read(site, self.content_path(site), str(post_id), ContentType.POST)

    def fetch_pages(
        self, site: SiteConfig, filters: ListFilters | None = None
    ) -> ContentListing:
        """List pages from ``pagesPath``; empty when no pages directory is set."""
        pages_path = site.option("pagesPath")
        if not pages_path:
            return ContentListing.empty()
        return self._list(site, pages_path.strip("/"), ContentType.PAGE, filters)

    def fetch_page(self, site: SiteConfig, page_id: str | int) -> ContentPage | None:
        pages_path = site.option("pagesPath")
        if not pages_path:
            return None
        return self._read(site, pages_path.strip("/"), str(page_id), ContentType.PAGE)

    # -- internals ------------------------------------------------------------

    def _list(
        self,
        site: SiteConfig,
        directory: str,
        content_type: ContentType,
        filters: ListFilters | None,
    ) -> ContentListing:
        filters = (filters or ListFilters()).clamp(self._settings.max_per_page)
        with site_logging_context(
            site, f"fetch_{content_type.value}s", directory=directory
        ) as log:
            try:
                provider = self.provider(site)
                entries = provider.list_directory(directory)
            except SiteConnectorError as exc:
                log.error("listing_failed", error=str(exc))
                return ContentListing.empty()

            items: list[ContentPage] = []
            for entry in entries:
                if not entry.is_markdown:
                    continue
                item = self._load_entry(site, provider, entry, content_type, log)
                if item is not None and self._matches(item, filters):
                    items.append(item)

            items.sort(key=_date_sort_key, reverse=True)
            total = len(items)
            start = (filters.page - 1) * filters.per_page
            return ContentListing(
                items=items[start : start + filters.per_page],
                total=total,
                page_count=count_pages(total, filters.per_page),
            )

    def _load_entry(
        self,
        site: SiteConfig,
        provider: GitProvider,
        entry: GitEntry,
        content_type: ContentType,
        log: structlog.stdlib.BoundLogger,
    ) -> ContentPage | None:
        try:
            document = provider.read_file(entry.path)
        except SiteConnectorError as exc:
            log.warning("file_fetch_failed", file=entry.name, error=str(exc))
            return None
        if document is None:
            return None
        return self.parse_document(site, document, entry.name, content_type)

    def _read(
        self,
        site: SiteConfig,
        directory: str,
        filename: str,
        content_type: ContentType,
    ) -> ContentPage | None:
        with site_logging_context(
            site, f"fetch_{content_type.value}", file=filename
        ) as log:
            try:
                document = self.provider(site).read_file(f"{directory}/{filename}")
            except SiteConnectorError as exc:
                log.error("file_fetch_failed", error=str(exc))
                return None
            if document is None:
                return None
            return self.parse_document(site, document, filename, content_type)

    @staticmethod
    def _matches(item: ContentPage, filters: ListFilters) -> bool:
        if filters.status not in ("", "any") and item.status != filters.status:
            return False
        needle = filters.search.strip().lower()
        if not needle:
            return True
        return needle in item.title.lower() or needle in item.content.lower()

    def parse_document(
        self,
        site: SiteConfig,
        document: str,
        filename: str,
        content_type: ContentType = ContentType.POST,
    ) -> ContentPage:
        """Rebuild a content record from a Markdown file and its name."""
        frontmatter, body = split_frontmatter(document)
        generator = self.generator(site)
        slug = PurePosixPath(filename).stem
        if generator is SiteGenerator.JEKYLL:
            slug = _JEKYLL_DATE_RE.sub("", slug) or slug

        if content_type is ContentType.POST:
            url = self.article_url(site, slug)
        else:
            site_url = site.option("siteUrl")
            url = join_url(site_url, f"{slug}/") if site_url else ""

        return ContentPage(
            id=filename,
            title=_text(first_present(frontmatter, TITLE_KEYS)) or slug,
            slug=slug,
            excerpt=_text(first_present(frontmatter, EXCERPT_KEYS)),
            content=body,
            status=status_from(frontmatter),
            url=url,
            date=_text(first_present(frontmatter, DATE_KEYS)) or None,
            modified_date=_text(first_present(frontmatter, MODIFIED_KEYS)) or None,
            categories=split_terms(
                frontmatter.get("categories"),
                spaces=generator is SiteGenerator.JEKYLL,
            ),
            tags=split_terms(frontmatter.get("tags")),
            type=content_type,
        )
