"""Init command implementation."""

import asyncio
from pathlib import Path

import typer
from rich.panel import Panel

from ..config import ConfigModel, save_config
from ..db import init_database, validate_connection
from .common import console


def init_command(
    config_dir: Path = typer.Option(
        Path.home() / ".config" / "newsradar",
        "--config-dir",
        "-c",
        help="Configuration directory",
    ),
    db_host: str = typer.Option("localhost", "--db-host", help="Postgres host"),
    db_port: int = typer.Option(5432, "--db-port", help="Postgres port"),
    db_name: str = typer.Option("newsradar", "--db-name", help="Database name"),
    db_user: str = typer.Option("newsradar", "--db-user", help="Database user"),
    redis_url: str = typer.Option(
        "", "--redis-url", help="Redis URL for the shared cache (in-process cache when empty)"
    ),
    llm_model: str = typer.Option("llama-3.3-70b", "--llm-model", help="Model used for similarity and watch checks"),
    llm_base_url: str = typer.Option(
        "https://api.cerebras.ai/v1", "--llm-base-url", help="OpenAI-compatible endpoint"
    ),
) -> None:
    """Write a configuration file and create the database schema."""
    console.print(Panel.fit("📰 NewsRadar - Initialization", style="bold blue"))

    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"

    config = ConfigModel(
        postgres={
            "host": db_host,
            "port": db_port,
            "database": db_name,
            "user": db_user,
            "password_env": "NEWSRADAR_DB_PASSWORD",
        },
        redis={"enabled": bool(redis_url), "url": redis_url or "redis://localhost:6379/0"},
        llm={"model": llm_model, "base_url": llm_base_url, "api_key_env": "CEREBRAS_API_KEY"},
    )

    save_config(config, config_path)
    console.print(f"✅ Created config: {config_path}")

    console.print("\n[bold]Testing database connection...[/bold]")
    db_config = config.postgres.model_dump()

    if not asyncio.run(validate_connection(db_config)):
        console.print(
            "[red]❌ Database connection failed![/red]\n"
            "Please ensure Postgres is running and credentials are correct.\n"
            "Set the password via environment variable: "
            "[bold]export NEWSRADAR_DB_PASSWORD=your_password[/bold]"
        )
        raise typer.Exit(1)

    console.print("✅ Database connection successful")

    console.print("\n[bold]Initializing database schema...[/bold]")
    try:
        asyncio.run(init_database(db_config))
        console.print("✅ Database schema initialized")
    except Exception as e:
        console.print(f"[red]❌ Failed to initialize database: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[green]✅ NewsRadar initialized successfully![/green]\n\n"
            f"Configuration: {config_path}\n\n"
            f"Next steps:\n"
            f"1. Set database password: [bold]export NEWSRADAR_DB_PASSWORD=your_password[/bold]\n"
            f"2. Set LLM API key: [bold]export CEREBRAS_API_KEY=your_key[/bold]\n"
            f"3. Add a source: [bold]newsradar sources add --help[/bold]\n"
            f"4. Start the worker: [bold]newsradar worker[/bold]",
            style="green",
        )
    )
