"""Deduplication, watch and feed inspection commands."""

import asyncio
from typing import Optional

import typer
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from ..dedup import BackfillStats
from ..ingestion import FeedParser
from ..pipeline import Runtime
from .common import console, load_settings, run_with_runtime


def dedup_backfill_command() -> None:
    """Group already stored articles that were never grouped."""

    async def body(runtime: Runtime) -> BackfillStats:
        if not runtime.dedup.is_semantic_available():
            console.print("[yellow]No LLM API key: only exact title matches will be grouped[/yellow]")
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fuzzy matching", total=None)

            def on_progress(current: int, total: int, grouped: int) -> None:
                progress.update(task, completed=current, total=total)

            return await runtime.dedup.backfill(on_progress=on_progress)

    stats = run_with_runtime(body, use_browser=False)
    console.print(
        f"[green]✅ Processed {stats.processed} articles, grouped {stats.grouped}, "
        f"{stats.groups} groups in total[/green]"
    )


def watch_sweep_command(
    keyword_id: Optional[int] = typer.Option(
        None, "--keyword", "-k", help="Re-run one keyword over its owner's recent articles"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum articles to analyze"),
) -> None:
    """Analyze recent articles against watch keywords."""

    async def body(runtime: Runtime) -> int:
        if not runtime.watch.is_available():
            console.print("[red]❌ Watch analysis needs an LLM API key[/red]")
            raise typer.Exit(1)
        if keyword_id is not None:
            return await runtime.watch.reanalyze_keyword(keyword_id, limit=limit or 100)
        return await runtime.watch.sweep(limit=limit)

    count = run_with_runtime(body, use_browser=False)
    noun = "matches" if keyword_id is not None else "articles analyzed"
    console.print(f"[green]✅ {count} {noun}[/green]")


def feed_preview_command(url: str = typer.Argument(..., help="Feed URL to inspect")) -> None:
    """Fetch a feed and show its metadata and first items."""
    config = load_settings()
    preview = asyncio.run(FeedParser(timeout=config.config.crawler.feed_timeout).preview_feed(url))

    if not preview.valid:
        console.print(f"[red]❌ Invalid feed: {preview.error}[/red]")
        raise typer.Exit(1)

    title = preview.metadata.get("title") or url
    console.print(f"[bold]{title}[/bold] ({preview.item_count} items)")
    if preview.metadata.get("description"):
        console.print(f"[dim]{preview.metadata['description']}[/dim]")

    table = Table(title="Sample Items")
    table.add_column("Title", style="cyan")
    table.add_column("Published", style="magenta")
    table.add_column("Partial", style="yellow")
    table.add_column("Link", style="blue")
    for item in preview.sample_items:
        table.add_row(item.title, item.published or "-", "✓" if item.is_partial else "✗", item.link)
    console.print(table)
