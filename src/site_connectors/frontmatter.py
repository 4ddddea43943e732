"""Markdown-with-frontmatter generation and parsing for static-site generators.

Each supported generator expects its own frontmatter keys (``date`` vs
``pubDate``, a boolean ``draft`` vs an inverted ``published``). Documents are
written and read with python-frontmatter, so list-valued categories and tags
survive a publish/fetch cycle. Blocks that are not valid YAML are read as
flat ``key: value`` lines instead.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import frontmatter
import structlog
import yaml
from slugify import slugify as transliterate_slug

if TYPE_CHECKING:
    from site_connectors.models import ArticleInput

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class SiteGenerator(StrEnum):
    """Static-site generators with a known frontmatter layout."""

    HUGO = "hugo"
    JEKYLL = "jekyll"
    GATSBY = "gatsby"
    NEXTJS = "nextjs"
    ASTRO = "astro"
    ELEVENTY = "eleventy"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None, default: str = "hugo") -> SiteGenerator:
        """Map a configured value to a generator; unknown values become OTHER."""
        try:
            return cls((value or default).strip().lower())
        except ValueError:
            return cls.OTHER


GENERATOR_LABELS: dict[str, str] = {
    SiteGenerator.HUGO: "Hugo",
    SiteGenerator.JEKYLL: "Jekyll",
    SiteGenerator.GATSBY: "Gatsby",
    SiteGenerator.ASTRO: "Astro",
    SiteGenerator.ELEVENTY: "Eleventy (11ty)",
    SiteGenerator.NEXTJS: "Next.js",
    SiteGenerator.OTHER: "Autre",
}

_YAML_HANDLER = frontmatter.YAMLHandler()
_FLAT_LINE_RE = re.compile(r"^(\w+):\s*(.*)$")

# Keys tried in order when reading a parsed block back.
TITLE_KEYS = ("title",)
EXCERPT_KEYS = ("description", "excerpt", "summary")
DATE_KEYS = ("date", "pubDate")
MODIFIED_KEYS = ("lastmod", "modified", "updated")

_TRUE_STRINGS = {"true", "yes", "on", "1"}


# ---------------------------------------------------------------------------
# Slugs and filenames
# ---------------------------------------------------------------------------


def slugify(text: str, fallback: str = "post") -> str:
    """Derive a URL-friendly slug from a title.

    Non-ASCII letters are transliterated (``oe`` for ``œ``, ``ss`` for ``ß``),
    everything is lower-cased and each run of non-alphanumeric characters
    becomes a single hyphen.

    Example::

        >>> slugify("Hello, World! 2024")
        'hello-world-2024'
    """
    return transliterate_slug(text) or fallback


def markdown_filename(
    title: str, generator: SiteGenerator, published_at: datetime
) -> str:
    """File name for a new post; Jekyll wants a ``YYYY-MM-DD-`` prefix."""
    slug = slugify(title)
    if generator is SiteGenerator.JEKYLL:
        return f"{published_at:%Y-%m-%d}-{slug}.md"
    return f"{slug}.md"


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def build_frontmatter(
    article: ArticleInput, generator: SiteGenerator, published_at: datetime
) -> dict[str, Any]:
    """Return the frontmatter mapping for ``article`` in generator key order."""
    date = published_at.isoformat(timespec="seconds")
    excerpt = article.excerpt or ""
    categories = list(article.categories)
    tags = list(article.tags)
    draft = article.is_draft

    match generator:
        case SiteGenerator.HUGO:
            return {
                "title": article.title,
                "date": date,
                "draft": draft,
                "description": excerpt,
                "categories": categories,
                "tags": tags,
            }
        case SiteGenerator.JEKYLL:
            data: dict[str, Any] = {
                "layout": "post",
                "title": article.title,
                "date": date,
                "categories": " ".join(categories),
                "tags": tags,
                "excerpt": excerpt,
            }
            if draft:
                data["published"] = False
            return data
        case SiteGenerator.GATSBY | SiteGenerator.NEXTJS:
            return {
                "title": article.title,
                "date": date,
                "published": not draft,
                "description": excerpt,
                "tags": tags,
            }
        case SiteGenerator.ASTRO:
            return {
                "title": article.title,
                "pubDate": date,
                "draft": draft,
                "description": excerpt,
                "tags": tags,
            }
        case _:
            return {"title": article.title, "date": date, "draft": draft}


def render_markdown(metadata: dict[str, Any], body: str) -> str:
    """Join a frontmatter mapping and a Markdown body into one document."""
    post = frontmatter.Post(body, **metadata)
    return frontmatter.dumps(post, sort_keys=False, width=10_000)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def split_frontmatter(document: str) -> tuple[dict[str, Any], str]:
    """Split a Markdown document into its frontmatter mapping and body.

    Only a block opening on the very first line is recognized. A document
    without one is returned whole as the body with empty frontmatter.
    """
    normalized = document.replace("\r\n", "\n")
    if not _YAML_HANDLER.detect(normalized):
        return {}, document
    try:
        post = frontmatter.loads(normalized)
    except yaml.YAMLError as exc:
        logger.debug("frontmatter_yaml_invalid", error=str(exc))
        raw, body = _YAML_HANDLER.split(normalized)
        return parse_flat_lines(raw), body.strip()
    return {str(key): value for key, value in post.metadata.items()}, post.content


def parse_flat_lines(raw: str) -> dict[str, str]:
    """Read ``key: value`` lines, stripping surrounding quotes from values."""
    result: dict[str, str] = {}
    for line in raw.splitlines():
        match = _FLAT_LINE_RE.match(line.strip())
        if match:
            result[match.group(1)] = match.group(2).strip().strip("\"'")
    return result


def truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def status_from(metadata: dict[str, Any]) -> str:
    """``draft`` when ``draft`` is true or ``published`` is false."""
    if "draft" in metadata and truthy(metadata["draft"]):
        return "draft"
    if "published" in metadata and not truthy(metadata["published"]):
        return "draft"
    return "publish"


def split_terms(value: Any, *, spaces: bool = False) -> list[str]:
    """Normalize a categories/tags value read back from frontmatter.

    Lists are kept as-is; strings are split on commas, and on whitespace too
    when ``spaces`` is set (Jekyll's space-separated categories).
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    text = str(value).strip().strip("[]")
    parts = re.split(r"[,\s]+" if spaces else r",", text)
    return [part.strip().strip("\"'") for part in parts if part.strip().strip("\"'")]
