"""Adapter capability contract and the pooled SQL adapter skeleton."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from enum import Enum
from types import ModuleType
from typing import Any, Callable, ClassVar, Generic, Iterator, Mapping, Protocol, Sequence, TypeGuard, TypeVar

from ..config import PoolSettings
from ..errors import DBConnectionError, DBDeskError, NotConnectedError, QueryError, ValidationError
from ..models import DatabaseType, DBConnectionOptions, validate_connection_options
from ..sql.classifier import is_selectable_query, normalize_query
from ..sql.common import encode_export, render_csv, render_insert_statements
from ..types import (
    DEFAULT_PAGE_SIZE,
    ColumnInfo,
    ConstraintInfo,
    CreateTableOptions,
    DeleteTableOptions,
    DeleteTableRowsOptions,
    DeleteTableRowsResult,
    ExportTableOptions,
    ExportTableResult,
    IndexInfo,
    InsertTableRowOptions,
    InsertTableRowResult,
    QueryResult,
    Row,
    RunQueryOptions,
    SchemaWithTables,
    SortRule,
    TableDataColumn,
    TableDataOptions,
    TableDataResult,
    TableInfo,
    TableOperationResult,
    UpdateTableCellOptions,
    UpdateTableCellResult,
)

LOG = logging.getLogger(__name__)

PoolT = TypeVar("PoolT")

Statement = tuple[str, Sequence[Any]]


class AdapterKind(str, Enum):
    """Capability level an adapter class declares."""

    BASE = "base"
    SQL = "sql"


class DBAdapter(Protocol):
    """Operations every adapter supports."""

    kind: ClassVar[AdapterKind]

    @property
    def connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def run_query(self, query: str, options: RunQueryOptions | None = None) -> QueryResult: ...


class SQLAdapter(DBAdapter, Protocol):
    """Schema browsing and guarded row-level mutation on top of `DBAdapter`."""

    async def list_schemas(self) -> tuple[str, ...]: ...

    async def list_tables(self, schema: str) -> tuple[str, ...]: ...

    async def list_schema_with_tables(self) -> tuple[SchemaWithTables, ...]: ...

    async def introspect_table(self, schema: str, table: str) -> TableInfo: ...

    async def fetch_table_data(self, options: TableDataOptions) -> TableDataResult: ...

    async def delete_table_rows(self, options: DeleteTableRowsOptions) -> DeleteTableRowsResult: ...

    async def update_table_cell(self, options: UpdateTableCellOptions) -> UpdateTableCellResult: ...

    async def insert_table_row(self, options: InsertTableRowOptions) -> InsertTableRowResult: ...

    async def export_table_as_csv(self, options: ExportTableOptions) -> ExportTableResult: ...

    async def export_table_as_sql(self, options: ExportTableOptions) -> ExportTableResult: ...

    async def create_table(self, options: CreateTableOptions) -> TableOperationResult: ...

    async def delete_table(self, options: DeleteTableOptions) -> TableOperationResult: ...


AdapterFactory = Callable[[DBConnectionOptions], DBAdapter]


def is_sql_adapter(adapter: DBAdapter) -> TypeGuard[SQLAdapter]:
    """True when the adapter's class declares the SQL capability."""

    return getattr(type(adapter), "kind", None) is AdapterKind.SQL


@contextmanager
def driver_errors(action: str) -> Iterator[None]:
    """Re-raise driver failures as `QueryError`; dbdesk errors pass through."""

    try:
        yield
    except DBDeskError:
        raise
    except Exception as exc:
        raise QueryError(f"{action}: {exc}") from exc


def primary_key_values(row: Row, primary_key_columns: Sequence[str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for column in primary_key_columns:
        if column not in row:
            raise ValidationError(f'Row is missing value for primary key column "{column}".')
        values[column] = row[column]
    return values


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class PooledSQLAdapter(ABC, Generic[PoolT]):
    """Connection lifecycle and dialect-independent algorithms for SQL adapters.

    Subclasses own the driver: they create, validate and close the pool, run
    statements, read the catalog and run statement batches inside one
    transaction. Everything else (pagination, primary-key guarded mutations,
    exports, DDL) is shared here and driven through `queries`, the dialect's
    builder module.
    """

    kind: ClassVar[AdapterKind] = AdapterKind.SQL
    dialect: ClassVar[DatabaseType]
    label: ClassVar[str]
    queries: ClassVar[ModuleType]

    def __init__(
        self,
        options: DBConnectionOptions | Mapping[str, Any],
        *,
        pool_settings: PoolSettings | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._options = validate_connection_options(self.dialect, options)
        self._pool_settings = pool_settings or PoolSettings()
        self._page_size = page_size
        self._pool: PoolT | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def options(self) -> DBConnectionOptions:
        return self._options

    @property
    def connected(self) -> bool:
        return self._pool is not None

    def describe(self) -> str:
        options = self._options
        return f"{self.label} at {options.host}:{options.port}/{options.database}"

    async def connect(self) -> None:
        """Create and validate the pool; a second call keeps the existing pool."""

        if self._pool is not None:
            return
        async with self._connect_lock:
            if self._pool is not None:
                return
            try:
                pool = await self._create_pool()
            except Exception as exc:
                raise DBConnectionError(f"Failed to connect to {self.describe()}: {exc}") from exc
            try:
                await self._validate_pool(pool)
            except Exception as exc:
                try:
                    await self._close_pool(pool)
                except Exception:
                    LOG.warning(
                        "Failed to tear down pool after validation error",
                        exc_info=True,
                        extra={"target": self.describe()},
                    )
                raise DBConnectionError(f"Failed to connect to {self.describe()}: {exc}") from exc
            self._pool = pool
            LOG.info("Connected", extra={"target": self.describe()})

    async def disconnect(self) -> None:
        pool = self._pool
        if pool is None:
            return
        self._pool = None
        try:
            await self._close_pool(pool)
        except Exception as exc:
            raise DBConnectionError(f"Failed to close pool for {self.describe()}: {exc}") from exc
        LOG.info("Disconnected", extra={"target": self.describe()})

    def _ensure_pool(self) -> PoolT:
        if self._pool is None:
            raise NotConnectedError(f"{self.label} adapter is not connected")
        return self._pool

    async def run_query(self, query: str, options: RunQueryOptions | None = None) -> QueryResult:
        """Run ad-hoc SQL, paginating single SELECT statements when asked to."""

        self._ensure_pool()
        normalized = normalize_query(query.strip())
        if not normalized:
            raise ValidationError("Provide SQL to execute.")
        started = time.perf_counter()
        with driver_errors("Query failed"):
            if options is not None and is_selectable_query(normalized):
                limit = options.limit if options.limit is not None else self._page_size
                offset = options.offset or 0
                count_rows, page = await asyncio.gather(
                    self._fetch(f"SELECT COUNT(*) AS total FROM ({normalized}\n) AS subquery"),
                    self._execute_raw(
                        f"SELECT * FROM ({normalized}\n) AS subquery LIMIT {int(limit)} OFFSET {int(offset)}"
                    ),
                )
                total = int(count_rows[0]["total"]) if count_rows else 0
                return replace(
                    page,
                    execution_time=_elapsed_ms(started),
                    total_row_count=total,
                    limit=int(limit),
                    offset=int(offset),
                )
            result = await self._execute_raw(normalized)
        return replace(result, execution_time=_elapsed_ms(started))

    async def introspect_table(self, schema: str, table: str) -> TableInfo:
        self._ensure_pool()
        with driver_errors(f'Failed to introspect "{schema}.{table}"'):
            columns, constraints, indexes = await asyncio.gather(
                self._query_columns(schema, table),
                self._query_constraints(schema, table),
                self._query_indexes(schema, table),
            )
        return TableInfo(
            name=table,
            schema=schema,
            columns=tuple(columns),
            constraints=tuple(constraints) or None,
            indexes=tuple(indexes) or None,
        )

    async def fetch_table_data(self, options: TableDataOptions) -> TableDataResult:
        """Read one page of a table plus its total count and column metadata.

        Without explicit sort rules the page is ordered by the primary key so
        that paging is stable.
        """

        self._ensure_pool()
        started = time.perf_counter()
        with driver_errors(f'Failed to fetch data from "{options.schema}.{options.table}"'):
            if options.sort_rules:
                rows, count_rows, columns = await asyncio.gather(
                    self._fetch(*self.queries.build_table_data_query(options)),
                    self._fetch(*self.queries.build_table_count_query(options)),
                    self._query_columns(options.schema, options.table),
                )
            else:
                columns = await self._query_columns(options.schema, options.table)
                keys = [column.name for column in columns if column.is_primary_key]
                if keys:
                    options = replace(options, sort_rules=tuple(SortRule(column) for column in keys))
                rows, count_rows = await asyncio.gather(
                    self._fetch(*self.queries.build_table_data_query(options)),
                    self._fetch(*self.queries.build_table_count_query(options)),
                )
        if columns:
            data_columns = tuple(
                TableDataColumn(
                    name=column.name,
                    data_type=column.type,
                    is_primary_key=column.is_primary_key,
                    enum_values=column.enum_values,
                    foreign_key=column.foreign_key,
                )
                for column in columns
            )
        else:
            data_columns = tuple(TableDataColumn(name=name, data_type="") for name in (rows[0] if rows else ()))
        return TableDataResult(
            rows=tuple(rows),
            columns=data_columns,
            total_count=int(count_rows[0]["total"]) if count_rows else 0,
            row_count=len(rows),
            execution_time=_elapsed_ms(started),
            primary_key_columns=tuple(column.name for column in columns if column.is_primary_key),
        )

    async def _require_primary_key(self, schema: str, table: str, action: str) -> list[str]:
        with driver_errors(f'Failed to read columns of "{schema}.{table}"'):
            columns = await self._query_columns(schema, table)
        keys = [column.name for column in columns if column.is_primary_key]
        if not keys:
            raise ValidationError(
                f'Table "{schema}.{table}" does not have a primary key. Add a primary key to {action} safely.'
            )
        return keys

    async def delete_table_rows(self, options: DeleteTableRowsOptions) -> DeleteTableRowsResult:
        self._ensure_pool()
        if not options.rows:
            return DeleteTableRowsResult(deleted_row_count=0)
        keys = await self._require_primary_key(options.schema, options.table, "delete rows")
        statements = [
            self.queries.build_delete_row_query(options.schema, options.table, keys, primary_key_values(row, keys))
            for row in options.rows
        ]
        with driver_errors("Failed to delete rows"):
            deleted = await self._run_in_transaction(statements)
        return DeleteTableRowsResult(deleted_row_count=deleted)

    async def update_table_cell(self, options: UpdateTableCellOptions) -> UpdateTableCellResult:
        self._ensure_pool()
        keys = await self._require_primary_key(options.schema, options.table, "update rows")
        statement = self.queries.build_update_cell_query(
            options.schema,
            options.table,
            options.column_to_update,
            options.new_value,
            keys,
            primary_key_values(options.row, keys),
        )
        with driver_errors("Failed to update cell"):
            updated = await self._run_in_transaction([statement])
        return UpdateTableCellResult(updated_row_count=updated)

    async def insert_table_row(self, options: InsertTableRowOptions) -> InsertTableRowResult:
        self._ensure_pool()
        if not options.values:
            raise ValidationError("No values provided for insert")
        await self._require_primary_key(options.schema, options.table, "insert rows")
        statement = self.queries.build_insert_row_query(options.schema, options.table, options.values)
        with driver_errors("Failed to insert row"):
            inserted = await self._run_in_transaction([statement])
        return InsertTableRowResult(inserted_row_count=inserted)

    async def _export_rows(self, options: ExportTableOptions) -> tuple[list[str], list[dict[str, Any]]]:
        self._ensure_pool()
        data_options = TableDataOptions(
            schema=options.schema,
            table=options.table,
            filters=options.filters,
            sort_rules=options.sort_rules,
            limit=None,
        )
        with driver_errors(f'Failed to export "{options.schema}.{options.table}"'):
            columns, rows = await asyncio.gather(
                self._query_columns(options.schema, options.table),
                self._fetch(*self.queries.build_table_data_query(data_options)),
            )
        names = [column.name for column in columns] or (list(rows[0]) if rows else [])
        return names, rows

    async def export_table_as_csv(self, options: ExportTableOptions) -> ExportTableResult:
        names, rows = await self._export_rows(options)
        return encode_export(render_csv(names, rows), f"{options.schema}.{options.table}.csv", "text/csv")

    async def export_table_as_sql(self, options: ExportTableOptions) -> ExportTableResult:
        names, rows = await self._export_rows(options)
        quote = self.queries.quote_identifier
        content = render_insert_statements(
            f"{quote(options.schema)}.{quote(options.table)}",
            [quote(name) for name in names],
            names,
            rows,
            self.queries.literal,
        )
        return encode_export(content, f"{options.schema}.{options.table}.sql", "application/sql")

    async def create_table(self, options: CreateTableOptions) -> TableOperationResult:
        self._ensure_pool()
        query = self.queries.build_create_table_query(options)
        with driver_errors("Failed to create table"):
            await self._execute(query)
        return TableOperationResult(success=True)

    async def delete_table(self, options: DeleteTableOptions) -> TableOperationResult:
        self._ensure_pool()
        query = self.queries.build_drop_table_query(options.schema, options.table)
        with driver_errors("Failed to delete table"):
            await self._execute(query)
        return TableOperationResult(success=True)

    @abstractmethod
    async def _create_pool(self) -> PoolT: ...

    @abstractmethod
    async def _validate_pool(self, pool: PoolT) -> None: ...

    @abstractmethod
    async def _close_pool(self, pool: PoolT) -> None: ...

    @abstractmethod
    async def _fetch(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run a row-returning statement on any pooled connection."""

    @abstractmethod
    async def _execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a statement that returns no rows; return the affected count."""

    @abstractmethod
    async def _execute_raw(self, query: str) -> QueryResult:
        """Run user SQL verbatim and describe whatever it produced."""

    @abstractmethod
    async def _run_in_transaction(self, statements: Sequence[Statement]) -> int:
        """Run statements on one dedicated connection inside a transaction."""

    @abstractmethod
    async def list_schemas(self) -> tuple[str, ...]: ...

    @abstractmethod
    async def list_tables(self, schema: str) -> tuple[str, ...]: ...

    @abstractmethod
    async def list_schema_with_tables(self) -> tuple[SchemaWithTables, ...]: ...

    @abstractmethod
    async def _query_columns(self, schema: str, table: str) -> list[ColumnInfo]: ...

    @abstractmethod
    async def _query_constraints(self, schema: str, table: str) -> list[ConstraintInfo]: ...

    @abstractmethod
    async def _query_indexes(self, schema: str, table: str) -> list[IndexInfo]: ...


__all__ = [
    "AdapterFactory",
    "AdapterKind",
    "DBAdapter",
    "PooledSQLAdapter",
    "SQLAdapter",
    "Statement",
    "driver_errors",
    "is_sql_adapter",
    "primary_key_values",
]
