"""SQL adapter that talks to MySQL through an aiomysql pool."""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Sequence

import aiomysql

from ..models import DatabaseType
from ..sql import mysql as mysql_sql
from ..types import (
    ColumnInfo,
    ConstraintInfo,
    ForeignKeyInfo,
    ForeignTable,
    IndexInfo,
    QueryResult,
    ReferentialAction,
    SchemaWithTables,
)
from .base import PooledSQLAdapter, Statement, driver_errors

LOG = logging.getLogger(__name__)

_CLOSE_GRACE_SECONDS = 5.0


def split_list(value: Any) -> tuple[str, ...]:
    """Split a NUL separated GROUP_CONCAT result into its parts."""

    if value is None:
        return ()
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    return tuple(part for part in str(value).split(mysql_sql.LIST_SEPARATOR) if part)


class MySQLAdapter(PooledSQLAdapter["aiomysql.Pool"]):
    """MySQL implementation of the SQL adapter contract.

    User SQL is executed without parameters so that a literal `%` reaches the
    server untouched; builder output always carries a parameter tuple.
    """

    dialect = DatabaseType.MYSQL
    label = "MySQL"
    queries = mysql_sql

    async def _create_pool(self) -> aiomysql.Pool:
        options = self.options
        settings = self._pool_settings
        return await aiomysql.create_pool(
            host=options.host,
            port=options.port,
            user=options.user,
            password=options.password,
            db=options.database,
            minsize=0,
            maxsize=settings.max_size,
            connect_timeout=settings.connect_timeout,
            pool_recycle=int(settings.idle_timeout),
            autocommit=True,
            init_command=mysql_sql.SESSION_SETUP,
            ssl=ssl.create_default_context() if options.ssl else None,
        )

    async def _validate_pool(self, pool: aiomysql.Pool) -> None:
        async with pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(mysql_sql.TEST_CONNECTION)
                await cursor.fetchone()

    async def _close_pool(self, pool: aiomysql.Pool) -> None:
        pool.close()
        try:
            await asyncio.wait_for(pool.wait_closed(), timeout=_CLOSE_GRACE_SECONDS)
        except TimeoutError:
            LOG.warning("Pool did not close in time; terminating", extra={"target": self.describe()})
            pool.terminate()

    async def _fetch(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(query, None if params is None else tuple(params))
                rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(query, tuple(params))
                return cursor.rowcount

    async def _execute_raw(self, query: str) -> QueryResult:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(query)
                if not cursor.description:
                    return QueryResult(rows=(), columns=(), row_count=max(cursor.rowcount, 0), execution_time=0.0)
                columns = tuple(field[0] for field in cursor.description)
                rows = tuple(dict(row) for row in await cursor.fetchall())
        return QueryResult(rows=rows, columns=columns, row_count=len(rows), execution_time=0.0)

    async def _run_in_transaction(self, statements: Sequence[Statement]) -> int:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.begin()
            try:
                affected = 0
                async with conn.cursor() as cursor:
                    for query, params in statements:
                        await cursor.execute(query, tuple(params))
                        affected += cursor.rowcount
                await conn.commit()
            except Exception:
                try:
                    await conn.rollback()
                except Exception:
                    LOG.warning("Rollback failed", exc_info=True, extra={"target": self.describe()})
                raise
        return affected

    async def list_schemas(self) -> tuple[str, ...]:
        self._ensure_pool()
        with driver_errors("Failed to list schemas"):
            rows = await self._fetch(mysql_sql.LIST_SCHEMAS)
        return tuple(row["schema_name"] for row in rows)

    async def list_tables(self, schema: str) -> tuple[str, ...]:
        self._ensure_pool()
        with driver_errors(f'Failed to list tables in "{schema}"'):
            rows = await self._fetch(mysql_sql.LIST_TABLES, [schema])
        return tuple(row["table_name"] for row in rows)

    async def list_schema_with_tables(self) -> tuple[SchemaWithTables, ...]:
        """The configured database is the only schema a MySQL profile browses."""

        database = self.options.database
        tables = await self.list_tables(database)
        return (SchemaWithTables(schema=database, tables=tables),)

    async def _query_columns(self, schema: str, table: str) -> list[ColumnInfo]:
        rows = await self._fetch(mysql_sql.LIST_COLUMNS, [schema, table])
        return [_column_from_row(row) for row in rows]

    async def _query_constraints(self, schema: str, table: str) -> list[ConstraintInfo]:
        rows = await self._fetch(mysql_sql.LIST_CONSTRAINTS, [schema, table])
        constraints = []
        for row in rows:
            foreign_table = None
            if row.get("foreign_table_name"):
                foreign_table = ForeignTable(schema=row["foreign_table_schema"], name=row["foreign_table_name"])
            foreign_columns = split_list(row.get("foreign_columns"))
            constraints.append(
                ConstraintInfo(
                    name=row["constraint_name"],
                    type=row["constraint_type"],
                    columns=split_list(row.get("columns")),
                    foreign_table=foreign_table,
                    foreign_columns=foreign_columns or None,
                )
            )
        return constraints

    async def _query_indexes(self, schema: str, table: str) -> list[IndexInfo]:
        rows = await self._fetch(mysql_sql.LIST_INDEXES, [schema, table])
        return [
            IndexInfo(name=row["index_name"], columns=split_list(row["column_names"]), unique=bool(row["is_unique"]))
            for row in rows
        ]


def _column_from_row(row: dict[str, Any]) -> ColumnInfo:
    foreign_key = None
    if row.get("fk_constraint_name") and row.get("referenced_table_name"):
        foreign_key = ForeignKeyInfo(
            referenced_schema=row["referenced_table_schema"],
            referenced_table=row["referenced_table_name"],
            referenced_column=row["referenced_column_name"],
            on_delete=ReferentialAction.parse(row.get("delete_rule")),
            on_update=ReferentialAction.parse(row.get("update_rule")),
        )
    return ColumnInfo(
        name=row["column_name"],
        type=row["data_type"],
        nullable=row["is_nullable"] == "YES",
        default_value=row.get("column_default"),
        is_primary_key=bool(row["is_primary_key"]),
        enum_values=mysql_sql.parse_enum_values(row.get("column_type")),
        foreign_key=foreign_key,
    )


__all__ = ["MySQLAdapter", "split_list"]
