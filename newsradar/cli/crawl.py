"""Crawl and worker commands."""

from typing import List

import typer
from rich.table import Table

from ..exceptions import NewsRadarError
from ..pipeline import CrawlJobResult, Runtime
from .common import console, run_with_runtime


def _print_results(results: List[CrawlJobResult]) -> None:
    table = Table(title="Crawl Results")
    table.add_column("Source", style="cyan")
    table.add_column("Found", style="magenta")
    table.add_column("Inserted", style="green")
    table.add_column("Duplicates", style="yellow")
    table.add_column("Errors", style="red")
    table.add_column("Duration", style="blue")

    for result in results:
        table.add_row(
            str(result.source_id),
            "304" if result.not_modified else str(result.items_found),
            str(result.items_inserted),
            str(result.duplicates),
            str(len(result.errors)),
            f"{result.duration_ms / 1000:.1f}s",
        )
    console.print(table)


def crawl_command(
    source_id: int = typer.Argument(..., help="Source to crawl"),
    browser: bool = typer.Option(True, "--browser/--no-browser", help="Allow headless browser fallback"),
) -> None:
    """Crawl one source now and print the outcome."""

    async def body(runtime: Runtime) -> CrawlJobResult:
        payload = await runtime.crawl_service.build_payload(source_id, triggered_by="manual")
        return await runtime.runner.run(payload)

    try:
        result = run_with_runtime(body, use_browser=browser)
    except NewsRadarError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    _print_results([result])
    for error in result.errors:
        console.print(f"  [yellow]- {error}[/yellow]")


def crawl_all_command(
    browser: bool = typer.Option(True, "--browser/--no-browser", help="Allow headless browser fallback"),
) -> None:
    """Queue every active source once and wait for the jobs."""

    async def body(runtime: Runtime) -> List[CrawlJobResult]:
        for payload in await runtime.crawl_service.active_payloads("manual"):
            await runtime.queue.enqueue(payload)
        await runtime.queue.join()
        await runtime.queue.stop()
        if runtime.queue.failed:
            console.print(f"[red]{runtime.queue.failed} job(s) failed after retries[/red]")
        return runtime.queue.completed

    _print_results(run_with_runtime(body, use_browser=browser))


def worker_command() -> None:
    """Run the scheduler: periodic crawls, watch sweeps and cleanup."""

    async def body(runtime: Runtime) -> None:
        console.print("[bold]Worker started[/bold] (Ctrl+C to stop)")
        await runtime.scheduler.run()

    run_with_runtime(body)
