"""Sources management commands."""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import typer
from rich.table import Table

from ..exceptions import SourceNotFoundError
from ..models import HealthStatus, SelectorRules, Source, SourceKind
from ..pipeline import Runtime
from .common import console, run_with_runtime

sources_app = typer.Typer(help="Manage crawl sources")

HEALTH_STYLES = {
    HealthStatus.HEALTHY: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.CRITICAL: "red",
}


@sources_app.command("list")
def sources_list() -> None:
    """List all sources with their health."""

    async def body(runtime: Runtime) -> List[Source]:
        return await runtime.repository.list_sources()

    sources = run_with_runtime(body, use_browser=False)
    if not sources:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title="Sources")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Kind", style="magenta")
    table.add_column("Status")
    table.add_column("Health")
    table.add_column("Success", style="green")
    table.add_column("Last error", style="red")
    table.add_column("URL", style="blue")

    for source in sources:
        health = source.health_status
        table.add_row(
            str(source.id),
            source.name,
            source.kind.value,
            source.status.value,
            f"[{HEALTH_STYLES[health]}]{health.value}[/{HEALTH_STYLES[health]}]",
            f"{source.success_rate}%",
            (source.last_error_message or "")[:40],
            source.url,
        )

    console.print(table)


@sources_app.command("add")
def sources_add(
    name: str = typer.Option(..., "--name", "-n", help="Source name"),
    url: str = typer.Option(..., "--url", "-u", help="Site, list page or feed URL"),
    feed: bool = typer.Option(False, "--feed", help="Crawl as an RSS/Atom feed"),
    list_item: Optional[str] = typer.Option(None, "--list-item", help="List item selector"),
    title: Optional[str] = typer.Option(None, "--title", help="Detail title selector"),
    date: Optional[str] = typer.Option(None, "--date", help="Detail date selector"),
    content: Optional[str] = typer.Option(None, "--content", help="Detail content selector"),
    summary: Optional[str] = typer.Option(None, "--summary", help="Detail summary selector"),
    image: Optional[str] = typer.Option(None, "--image", help="Detail image selector"),
    content_selector: Optional[str] = typer.Option(
        None, "--enrich-selector", help="Fetch truncated feed items and read this selector"
    ),
    ai_fallback: bool = typer.Option(False, "--ai-fallback", help="Retry partial articles with the LLM"),
    system: bool = typer.Option(True, "--system/--user", help="Visible to every user"),
    user_id: Optional[int] = typer.Option(None, "--user-id", help="Owning user for user sources"),
) -> None:
    """Add a selector or feed source."""
    if not feed and not list_item:
        console.print("[red]Selector sources need --list-item.[/red]")
        raise typer.Exit(1)

    source = Source(
        name=name,
        url=url,
        kind=SourceKind.FEED if feed else SourceKind.SELECTOR,
        selectors=None
        if feed
        else SelectorRules(
            list_item=list_item, title=title, date=date, content=content, summary=summary, image=image
        ),
        feed_url=url if feed else None,
        enrich_content=bool(feed and content_selector),
        content_selector=content_selector,
        ai_fallback=ai_fallback,
        is_system=system,
        user_id=user_id,
    )

    async def body(runtime: Runtime) -> Tuple[Source, Optional[Dict[str, Any]]]:
        if feed:
            preview = await runtime.feed_parser.preview_feed(url)
            if not preview.valid or preview.item_count == 0:
                console.print(f"[red]URL does not serve a feed with items: {url}[/red]")
                raise typer.Exit(1)
            stored = await runtime.repository.add_source(source)
            await runtime.checker.remember_feed(stored, preview)
            return stored, None
        stored = await runtime.repository.add_source(source)
        return stored, await runtime.checker.check_selectors(stored)

    stored, check = run_with_runtime(body, use_browser=False)
    console.print(f"[green]✅ Added source {stored.id}: {stored.name}[/green]")
    if check is not None and not check["is_valid"]:
        console.print(f"[yellow]⚠️  List selector matched nothing on {stored.url}[/yellow]")


def _apply(action: Callable[[Runtime], Awaitable[Source]], message: str) -> None:
    try:
        source = run_with_runtime(action, use_browser=False)
    except SourceNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ {message}: {source.name} ({source.status.value})[/green]")


@sources_app.command("pause")
def sources_pause(source_id: int = typer.Argument(..., help="Source ID")) -> None:
    """Stop scheduling a source."""
    _apply(lambda runtime: runtime.health.pause(source_id), "Paused")


@sources_app.command("activate")
def sources_activate(source_id: int = typer.Argument(..., help="Source ID")) -> None:
    """Resume a paused or errored source."""
    _apply(lambda runtime: runtime.health.activate(source_id), "Activated")


@sources_app.command("reset")
def sources_reset(source_id: int = typer.Argument(..., help="Source ID")) -> None:
    """Clear a source's health counters."""
    _apply(lambda runtime: runtime.health.reset_health(source_id), "Health reset")


@sources_app.command("check")
def sources_check(
    source_id: int = typer.Argument(..., help="Source ID"),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached results"),
) -> None:
    """Show whether a source's selector or feed still works."""

    async def body(runtime: Runtime) -> Tuple[Source, Optional[Dict[str, Any]]]:
        source = await runtime.repository.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source with id {source_id} not found")
        if source.kind == SourceKind.FEED:
            return source, await runtime.checker.feed_metadata(source, refresh=refresh)
        return source, await runtime.checker.check_selectors(source, refresh=refresh)

    try:
        source, result = run_with_runtime(body, use_browser=False)
    except SourceNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if source.kind == SourceKind.FEED:
        if result is None:
            console.print(f"[red]❌ Feed did not parse: {source.feed_url or source.url}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]✅ {result.get('title') or source.name}[/green]")
        if result.get("description"):
            console.print(f"   {result['description']}")
        return

    if result["is_valid"]:
        console.print(f"[green]✅ List selector matched {result['found_count']} items[/green]")
    else:
        console.print(f"[red]❌ List selector matched nothing on {source.url}[/red]")
        raise typer.Exit(1)
