"""SQL adapter that talks to PostgreSQL through an asyncpg pool."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import asyncpg

from ..models import DatabaseType
from ..sql import postgres as postgres_sql
from ..sql.classifier import has_additional_statements
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


def affected_rows(status: str | None) -> int:
    """Row count carried by a command tag such as `UPDATE 3` or `INSERT 0 1`."""

    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class PostgresAdapter(PooledSQLAdapter["asyncpg.Pool"]):
    """PostgreSQL implementation of the SQL adapter contract."""

    dialect = DatabaseType.POSTGRES
    label = "Postgres"
    queries = postgres_sql

    async def _create_pool(self) -> asyncpg.Pool:
        options = self.options
        settings = self._pool_settings
        return await asyncpg.create_pool(
            host=options.host,
            port=options.port,
            user=options.user,
            password=options.password,
            database=options.database,
            ssl=options.ssl_mode or "disable",
            min_size=0,
            max_size=settings.max_size,
            timeout=settings.connect_timeout,
            max_inactive_connection_lifetime=settings.idle_timeout,
        )

    async def _validate_pool(self, pool: asyncpg.Pool) -> None:
        async with pool.acquire() as conn:
            await conn.fetchval(postgres_sql.TEST_CONNECTION)

    async def _close_pool(self, pool: asyncpg.Pool) -> None:
        try:
            await asyncio.wait_for(pool.close(), timeout=_CLOSE_GRACE_SECONDS)
        except TimeoutError:
            LOG.warning("Pool did not close in time; terminating", extra={"target": self.describe()})
            pool.terminate()

    async def _fetch(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        pool = self._ensure_pool()
        records = await pool.fetch(query, *(params or ()))
        return [dict(record) for record in records]

    async def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        pool = self._ensure_pool()
        return affected_rows(await pool.execute(query, *params))

    async def _execute_raw(self, query: str) -> QueryResult:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            if has_additional_statements(query):
                # Prepared statements accept a single command only.
                status = await conn.execute(query)
                return QueryResult(rows=(), columns=(), row_count=affected_rows(status), execution_time=0.0)
            statement = await conn.prepare(query)
            records = await statement.fetch()
            columns = tuple(attribute.name for attribute in statement.get_attributes())
            rows = tuple(dict(record) for record in records)
            row_count = len(rows) if columns else affected_rows(statement.get_statusmsg())
        return QueryResult(rows=rows, columns=columns, row_count=row_count, execution_time=0.0)

    async def _run_in_transaction(self, statements: Sequence[Statement]) -> int:
        pool = self._ensure_pool()
        async with pool.acquire() as conn:
            transaction = conn.transaction()
            await transaction.start()
            try:
                affected = 0
                for query, params in statements:
                    affected += affected_rows(await conn.execute(query, *params))
                await transaction.commit()
            except Exception:
                try:
                    await transaction.rollback()
                except Exception:
                    LOG.warning("Rollback failed", exc_info=True, extra={"target": self.describe()})
                raise
        return affected

    async def list_schemas(self) -> tuple[str, ...]:
        self._ensure_pool()
        with driver_errors("Failed to list schemas"):
            rows = await self._fetch(postgres_sql.LIST_SCHEMAS)
        return tuple(row["schema_name"] for row in rows)

    async def list_tables(self, schema: str) -> tuple[str, ...]:
        self._ensure_pool()
        with driver_errors(f'Failed to list tables in "{schema}"'):
            rows = await self._fetch(postgres_sql.LIST_TABLES, [schema])
        return tuple(row["table_name"] for row in rows)

    async def list_schema_with_tables(self) -> tuple[SchemaWithTables, ...]:
        self._ensure_pool()
        with driver_errors("Failed to list schemas"):
            rows = await self._fetch(postgres_sql.LIST_SCHEMAS_WITH_TABLES)
        return tuple(
            SchemaWithTables(schema=row["schema_name"], tables=tuple(row["tables"] or ()))
            for row in rows
        )

    async def _query_columns(self, schema: str, table: str) -> list[ColumnInfo]:
        rows = await self._fetch(postgres_sql.LIST_COLUMNS, [schema, table])
        return [_column_from_row(row) for row in rows]

    async def _query_constraints(self, schema: str, table: str) -> list[ConstraintInfo]:
        rows = await self._fetch(postgres_sql.LIST_CONSTRAINTS, [schema, table])
        constraints = []
        for row in rows:
            foreign_table = None
            if row.get("foreign_table_name"):
                foreign_table = ForeignTable(schema=row["foreign_table_schema"], name=row["foreign_table_name"])
            constraints.append(
                ConstraintInfo(
                    name=row["constraint_name"],
                    type=row["constraint_type"],
                    columns=tuple(row["columns"] or ()),
                    foreign_table=foreign_table,
                    foreign_columns=tuple(row["foreign_columns"]) if row.get("foreign_columns") else None,
                )
            )
        return constraints

    async def _query_indexes(self, schema: str, table: str) -> list[IndexInfo]:
        rows = await self._fetch(postgres_sql.LIST_INDEXES, [schema, table])
        return [
            IndexInfo(name=row["index_name"], columns=tuple(row["column_names"] or ()), unique=bool(row["is_unique"]))
            for row in rows
        ]


def _column_from_row(row: dict[str, Any]) -> ColumnInfo:
    data_type = row["data_type"]
    if data_type == "USER-DEFINED" and row.get("udt_name"):
        data_type = row["udt_name"]
    foreign_key = None
    if row.get("fk_constraint_name") and row.get("referenced_table_name"):
        foreign_key = ForeignKeyInfo(
            referenced_schema=row["referenced_table_schema"],
            referenced_table=row["referenced_table_name"],
            referenced_column=row["referenced_column_name"],
            on_delete=ReferentialAction.parse(row.get("delete_rule")),
            on_update=ReferentialAction.parse(row.get("update_rule")),
        )
    enum_values = row.get("enum_values")
    return ColumnInfo(
        name=row["column_name"],
        type=data_type,
        nullable=row["is_nullable"] == "YES",
        default_value=row.get("column_default"),
        is_primary_key=bool(row["is_primary_key"]),
        enum_values=tuple(enum_values) if enum_values else None,
        foreign_key=foreign_key,
    )


__all__ = ["PostgresAdapter", "affected_rows"]
