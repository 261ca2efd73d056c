"""Main CLI application."""

import typer
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

from .crawl import crawl_all_command, crawl_command, worker_command
from .init import init_command
from .maintenance import dedup_backfill_command, feed_preview_command, watch_sweep_command
from .sources import sources_app

app = typer.Typer(
    name="newsradar",
    help="NewsRadar - news crawler with cross-source deduplication and keyword watch",
    no_args_is_help=True,
)

# Register commands
app.command("init")(init_command)
app.command("crawl")(crawl_command)
app.command("crawl-all")(crawl_all_command)
app.command("worker")(worker_command)
app.command("dedup-backfill")(dedup_backfill_command)
app.command("watch-sweep")(watch_sweep_command)
app.command("feed-preview")(feed_preview_command)
app.add_typer(sources_app, name="sources", help="Manage crawl sources")


if __name__ == "__main__":
    app()
