"""Typer CLI entry point for site-connectors operators."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from site_connectors import __version__
from site_connectors.config import Settings, format_validation_error
from site_connectors.exceptions import ConnectorRequestError, SiteConnectorError
from site_connectors.factory import ConnectorFactory
from site_connectors.logging import configure_logging
from site_connectors.models import ArticleInput, ArticleStatus, ListFilters, SiteConfig
from site_connectors.sites import find_site, load_sites

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="site-connectors",
    help="Publish to and inspect WordPress, REST API and Git-backed sites.",
    no_args_is_help=True,
)

SitesFile = Annotated[
    Path,
    typer.Argument(help="YAML file with a 'sites:' list.", exists=True, dir_okay=False),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(config_path: Path | None = None, **overrides: Any) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


def _settings(ctx: typer.Context) -> Settings:
    obj = ctx.obj or {}
    settings: Settings | None = obj.get("settings")
    if settings is None:
        settings = _load_settings(obj.get("config"))
        obj["settings"] = settings
        ctx.obj = obj
    return settings


def _factory(ctx: typer.Context) -> ConnectorFactory:
    return ConnectorFactory.from_settings(_settings(ctx))


def _load_sites_or_exit(path: Path) -> list[SiteConfig]:
    try:
        return load_sites(path)
    except SiteConnectorError as exc:
        err_console.print(Panel(str(exc), title="Sites Error", border_style="red"))
        raise typer.Exit(code=1) from exc


def _select_site(sites: list[SiteConfig], name: str) -> SiteConfig:
    try:
        return find_site(sites, name)
    except SiteConnectorError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def _display_error(exc: SiteConnectorError, settings: Settings) -> None:
    """Show the user-facing message for ``exc``, with diagnostics dimmed."""
    if isinstance(exc, ConnectorRequestError):
        body = (
            f"[red bold]{exc.user_message(settings.connector.locale)}[/red bold]"
            f"\n\n[dim]{exc}[/dim]"
        )
    else:
        body = f"[red bold]{exc}[/red bold]"
    err_console.print(Panel(body, title="Error", border_style="red"))


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]site-connectors[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level."),
    ] = None,
) -> None:
    """Site-connectors global options."""
    settings = _load_settings(config)
    level = log_level or settings.logging.level
    try:
        configure_logging(level, settings.logging.format, settings.logging.file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    ctx.obj = {"config": config, "settings": settings}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def catalog(ctx: typer.Context) -> None:
    """List the available connector types and their configuration fields."""
    factory = _factory(ctx)
    try:
        for descriptor in factory.catalog():
            table = Table(
                title=f"{descriptor.display_name} ({descriptor.type})",
                caption=descriptor.description,
                show_lines=True,
            )
            table.add_column("Field", style="cyan")
            table.add_column("Label")
            table.add_column("Kind", style="dim")
            table.add_column("Required", justify="center")
            for field in descriptor.configuration_fields:
                table.add_row(
                    field.name,
                    field.label,
                    field.kind,
                    "[green]yes[/green]" if field.required else "no",
                )
            console.print(table)
            features = ", ".join(sorted(feat.value for feat in descriptor.features))
            console.print(f"[dim]Features: {features}[/dim]\n")
    finally:
        factory.close()


@app.command()
def check(
    ctx: typer.Context,
    sites_file: SitesFile,
) -> None:
    """Validate every site and test its connection."""
    sites = _load_sites_or_exit(sites_file)
    factory = _factory(ctx)

    table = Table(title="Site Connections", show_lines=True)
    table.add_column("Site", style="cyan")
    table.add_column("Type")
    table.add_column("Status", justify="center")
    table.add_column("Message")

    failures = 0
    try:
        for site in sites:
            problems = factory.validate(site)
            if problems:
                failures += 1
                table.add_row(
                    site.display_name,
                    site.type,
                    "[red]INVALID[/red]",
                    "; ".join(problems),
                )
                continue
            online = factory.resolve(site).test_connection(site)
            if not online:
                failures += 1
            table.add_row(
                site.display_name,
                site.type,
                "[green]ONLINE[/green]" if online else "[red]OFFLINE[/red]",
                "",
            )
    finally:
        factory.close()

    console.print(table)
    raise typer.Exit(code=1 if failures else 0)


@app.command()
def stats(
    ctx: typer.Context,
    sites_file: SitesFile,
    site_name: Annotated[
        str | None,
        typer.Option("--site", "-s", help="Only this site (default: all)."),
    ] = None,
) -> None:
    """Show aggregate statistics for one or all sites."""
    sites = _load_sites_or_exit(sites_file)
    if site_name:
        sites = [_select_site(sites, site_name)]
    factory = _factory(ctx)

    table = Table(title="Site Statistics", show_lines=True)
    table.add_column("Site", style="cyan")
    table.add_column("Title")
    table.add_column("Posts", justify="right")
    table.add_column("Categories", justify="right")
    table.add_column("Tags", justify="right")
    table.add_column("Version", style="dim")

    try:
        for site in sites:
            try:
                connector = factory.resolve(site)
            except SiteConnectorError as exc:
                table.add_row(site.display_name, f"[red]{exc}[/red]", "", "", "", "")
                continue
            snapshot = connector.fetch_stats(site)
            table.add_row(
                site.display_name,
                snapshot.site_title or "",
                str(snapshot.total_posts),
                str(snapshot.total_categories),
                str(snapshot.total_tags),
                snapshot.platform_version or "",
            )
    finally:
        factory.close()

    console.print(table)


@app.command()
def posts(
    ctx: typer.Context,
    sites_file: SitesFile,
    site_name: Annotated[str, typer.Option("--site", "-s", help="Site name.")],
    page: Annotated[int, typer.Option("--page", min=1, help="Page number.")] = 1,
    per_page: Annotated[
        int, typer.Option("--per-page", min=1, help="Items per page.")
    ] = 10,
    status: Annotated[
        str, typer.Option("--status", help="Status filter (any, publish, draft...).")
    ] = "any",
    search: Annotated[str, typer.Option("--search", help="Text filter.")] = "",
) -> None:
    """List one page of posts from a site."""
    site = _select_site(_load_sites_or_exit(sites_file), site_name)
    settings = _settings(ctx)
    factory = _factory(ctx)
    filters = ListFilters(page=page, per_page=per_page, status=status, search=search)
    try:
        listing = factory.resolve(site).fetch_posts(site, filters)
    except SiteConnectorError as exc:
        _display_error(exc, settings)
        raise typer.Exit(code=1) from exc
    finally:
        factory.close()

    table = Table(
        title=f"{site.display_name}: page {page}/{listing.page_count or 1}",
        caption=f"{listing.total} item(s) in total",
        show_lines=True,
    )
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status", justify="center")
    table.add_column("Date", style="dim")
    for item in listing.items:
        table.add_row(item.id, item.title, item.status, item.date or "")
    console.print(table)


@app.command()
def publish(
    ctx: typer.Context,
    sites_file: SitesFile,
    site_name: Annotated[str, typer.Option("--site", "-s", help="Site name.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Article title.")],
    content_file: Annotated[
        Path,
        typer.Option(
            "--content-file",
            "-f",
            help="File holding the article body.",
            exists=True,
            dir_okay=False,
        ),
    ],
    status: Annotated[
        ArticleStatus, typer.Option("--status", help="Publication status.")
    ] = ArticleStatus.DRAFT,
    categories: Annotated[
        list[str] | None,
        typer.Option("--category", help="Category name (repeatable)."),
    ] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Tag name (repeatable)."),
    ] = None,
    excerpt: Annotated[
        str | None, typer.Option("--excerpt", help="Short summary.")
    ] = None,
) -> None:
    """Publish an article to one site."""
    from pydantic import ValidationError

    site = _select_site(_load_sites_or_exit(sites_file), site_name)
    settings = _settings(ctx)
    try:
        article = ArticleInput(
            title=title,
            content=content_file.read_text(encoding="utf-8"),
            status=status,
            categories=tuple(categories or ()),
            tags=tuple(tags or ()),
            excerpt=excerpt,
        )
    except ValidationError as exc:
        err_console.print(
            Panel(str(exc), title="Invalid Article", border_style="red")
        )
        raise typer.Exit(code=1) from exc

    factory = _factory(ctx)
    try:
        result = factory.resolve(site).publish(site, article)
    except SiteConnectorError as exc:
        _display_error(exc, settings)
        raise typer.Exit(code=1) from exc
    finally:
        factory.close()

    if not result.success:
        err_console.print(
            Panel(result.message, title="Publish Failed", border_style="red")
        )
        raise typer.Exit(code=1)

    lines = [f"[green bold]{result.message}[/green bold]"]
    if result.remote_id is not None:
        lines.append(f"ID: {result.remote_id}")
    if result.url:
        lines.append(f"URL: {result.url}")
    console.print(Panel("\n".join(lines), title="Published", border_style="green"))


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
