"""Database connection management."""

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

OPEN_TIMEOUT = 10.0


class DatabaseConfig:
    """Database configuration."""

    def __init__(self, config: Dict[str, Any]) -> None:
        """Initialize database config from dict."""
        self.host = config.get("host", "localhost")
        self.port = config.get("port", 5432)
        self.database = config.get("database", "newsradar")
        self.user = config.get("user", "newsradar")
        self.min_size = config.get("min_pool_size", 1)
        self.max_size = config.get("max_pool_size", 10)

        password_env = config.get("password_env")
        self.password = config.get("password") or ""
        if not self.password and password_env:
            self.password = os.environ.get(password_env, "")

    @property
    def connection_string(self) -> str:
        """Get psycopg connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


async def open_pool(config: Dict[str, Any]) -> AsyncConnectionPool:
    """Create and open an async connection pool returning dict rows."""
    db_config = DatabaseConfig(config)
    pool = AsyncConnectionPool(
        db_config.connection_string,
        min_size=db_config.min_size,
        max_size=db_config.max_size,
        kwargs={"row_factory": dict_row},
        open=False,
    )
    try:
        await pool.open(wait=True, timeout=OPEN_TIMEOUT)
    except Exception:
        await pool.close()
        raise
    return pool


@asynccontextmanager
async def get_connection(pool: AsyncConnectionPool) -> AsyncIterator[psycopg.AsyncConnection]:
    """Get a database connection from the pool; commits on clean exit."""
    async with pool.connection() as conn:
        yield conn
