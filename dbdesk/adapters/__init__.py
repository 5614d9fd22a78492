"""Database adapters and the registry that selects them."""

from __future__ import annotations

from functools import partial

from ..config import PoolSettings
from ..models import DatabaseType
from ..types import DEFAULT_PAGE_SIZE
from .base import AdapterFactory, AdapterKind, DBAdapter, PooledSQLAdapter, SQLAdapter, is_sql_adapter
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .registry import AdapterRegistry


def build_default_registry(
    pool_settings: PoolSettings | None = None, *, page_size: int = DEFAULT_PAGE_SIZE
) -> AdapterRegistry:
    """Registry with the built-in Postgres and MySQL adapters.

    `page_size` is the row limit `run_query` uses when a caller asks for
    pagination without naming a limit.
    """

    return AdapterRegistry(
        [
            (DatabaseType.POSTGRES, partial(PostgresAdapter, pool_settings=pool_settings, page_size=page_size)),
            (DatabaseType.MYSQL, partial(MySQLAdapter, pool_settings=pool_settings, page_size=page_size)),
        ]
    )


__all__ = [
    "AdapterFactory",
    "AdapterKind",
    "AdapterRegistry",
    "DBAdapter",
    "MySQLAdapter",
    "PooledSQLAdapter",
    "PostgresAdapter",
    "SQLAdapter",
    "build_default_registry",
    "is_sql_adapter",
]
