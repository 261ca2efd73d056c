"""Helpers shared by CLI commands."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from ..config import Config
from ..logging_setup import setup_logging
from ..pipeline import Runtime

console = Console()

T = TypeVar("T")


def load_settings() -> Config:
    """Load configuration (defaults when no file exists) and configure logging."""
    try:
        config = Config(optional=True)
        setup_logging(config.config.log_level, console=Console(stderr=True))
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    return config


def run_with_runtime(
    body: Callable[[Runtime], Awaitable[T]],
    use_browser: bool = True,
) -> T:
    """Build the runtime, run ``body`` inside it and tear everything down."""
    config = load_settings()

    async def main() -> T:
        async with Runtime(config, use_browser=use_browser) as runtime:
            return await body(runtime)

    try:
        return asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(1)
