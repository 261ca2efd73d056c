"""Database management for the news pipeline."""

from .base import Repository
from .connection import get_connection, open_pool
from .init import init_database, validate_connection
from .postgres import PostgresRepository

__all__ = [
    "Repository",
    "PostgresRepository",
    "get_connection",
    "open_pool",
    "init_database",
    "validate_connection",
]
