"""Postgres catalog queries and statement builders.

Placeholders are `$1, $2, ...`. Builders that chain several sections thread a
running index so numbering continues where the WHERE clause stopped.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from ..types import (
    ColumnDefinition,
    CreateTableOptions,
    FilterOperator,
    TableDataOptions,
    TableFilter,
)
from .common import (
    check_type_expression,
    normalize_is_value,
    render_order_by,
    require_columns,
    sql_literal,
)

TEST_CONNECTION = "SELECT 1"

LIST_SCHEMAS = """
    SELECT schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
      AND schema_name NOT LIKE 'pg\\_toast%'
      AND schema_name NOT LIKE 'pg\\_temp\\_%'
    ORDER BY schema_name
"""

LIST_TABLES = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

LIST_SCHEMAS_WITH_TABLES = """
    SELECT
      s.schema_name::text AS schema_name,
      COALESCE(
        array_agg(t.table_name::text ORDER BY t.table_name) FILTER (WHERE t.table_name IS NOT NULL),
        '{}'::text[]
      ) AS tables
    FROM information_schema.schemata s
    LEFT JOIN information_schema.tables t
      ON t.table_schema = s.schema_name
      AND t.table_type = 'BASE TABLE'
    WHERE s.schema_name NOT IN ('pg_catalog', 'information_schema')
      AND s.schema_name NOT LIKE 'pg\\_toast%'
      AND s.schema_name NOT LIKE 'pg\\_temp\\_%'
    GROUP BY s.schema_name
    ORDER BY s.schema_name
"""

LIST_COLUMNS = """
    SELECT
      c.column_name::text AS column_name,
      c.data_type::text AS data_type,
      c.udt_name::text AS udt_name,
      c.is_nullable::text AS is_nullable,
      c.column_default::text AS column_default,
      EXISTS (
        SELECT 1
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
          AND tc.table_schema = kcu.table_schema
          AND tc.table_name = kcu.table_name
        WHERE tc.constraint_type = 'PRIMARY KEY'
          AND tc.table_schema = c.table_schema
          AND tc.table_name = c.table_name
          AND kcu.column_name = c.column_name
      ) AS is_primary_key,
      fk.constraint_name AS fk_constraint_name,
      fk.referenced_table_schema,
      fk.referenced_table_name,
      fk.referenced_column_name,
      fk.delete_rule,
      fk.update_rule,
      (
        SELECT array_agg(e.enumlabel::text ORDER BY e.enumsortorder)
        FROM pg_type t
        JOIN pg_enum e ON e.enumtypid = t.oid
        JOIN pg_namespace n ON n.oid = t.typnamespace
        WHERE t.typname = c.udt_name
          AND n.nspname = c.udt_schema
      ) AS enum_values
    FROM information_schema.columns c
    LEFT JOIN LATERAL (
      SELECT
        kcu.constraint_name::text AS constraint_name,
        ccu.table_schema::text AS referenced_table_schema,
        ccu.table_name::text AS referenced_table_name,
        ccu.column_name::text AS referenced_column_name,
        rc.delete_rule::text AS delete_rule,
        rc.update_rule::text AS update_rule
      FROM information_schema.key_column_usage kcu
      JOIN information_schema.referential_constraints rc
        ON rc.constraint_name = kcu.constraint_name
        AND rc.constraint_schema = kcu.constraint_schema
      JOIN information_schema.constraint_column_usage ccu
        ON ccu.constraint_name = kcu.constraint_name
        AND ccu.constraint_schema = kcu.constraint_schema
      WHERE kcu.table_schema = c.table_schema
        AND kcu.table_name = c.table_name
        AND kcu.column_name = c.column_name
      LIMIT 1
    ) fk ON true
    WHERE c.table_schema = $1
      AND c.table_name = $2
    ORDER BY c.ordinal_position
"""

LIST_CONSTRAINTS = """
    SELECT
      tc.constraint_name::text AS constraint_name,
      tc.constraint_type::text AS constraint_type,
      (
        SELECT array_agg(kcu.column_name::text ORDER BY kcu.ordinal_position)
        FROM information_schema.key_column_usage kcu
        WHERE kcu.constraint_schema = tc.constraint_schema
          AND kcu.constraint_name = tc.constraint_name
          AND kcu.table_schema = tc.table_schema
          AND kcu.table_name = tc.table_name
      ) AS columns,
      fk.foreign_table_schema,
      fk.foreign_table_name,
      fk.foreign_columns
    FROM information_schema.table_constraints tc
    LEFT JOIN LATERAL (
      SELECT
        min(ref.table_schema::text) AS foreign_table_schema,
        min(ref.table_name::text) AS foreign_table_name,
        array_agg(ref.column_name::text ORDER BY kcu.ordinal_position) AS foreign_columns
      FROM information_schema.key_column_usage kcu
      JOIN information_schema.referential_constraints rc
        ON rc.constraint_schema = kcu.constraint_schema
        AND rc.constraint_name = kcu.constraint_name
      JOIN information_schema.key_column_usage ref
        ON ref.constraint_schema = rc.unique_constraint_schema
        AND ref.constraint_name = rc.unique_constraint_name
        AND ref.ordinal_position = kcu.position_in_unique_constraint
      WHERE tc.constraint_type = 'FOREIGN KEY'
        AND kcu.constraint_schema = tc.constraint_schema
        AND kcu.constraint_name = tc.constraint_name
        AND kcu.table_schema = tc.table_schema
        AND kcu.table_name = tc.table_name
    ) fk ON true
    WHERE tc.table_schema = $1
      AND tc.table_name = $2
    ORDER BY tc.constraint_name
"""

LIST_INDEXES = """
    SELECT
      idx.relname::text AS index_name,
      array_agg(att.attname::text ORDER BY ord.ordinality) AS column_names,
      i.indisunique AS is_unique
    FROM pg_class AS tbl
    JOIN pg_namespace AS ns ON ns.oid = tbl.relnamespace
    JOIN pg_index AS i ON i.indrelid = tbl.oid
    JOIN pg_class AS idx ON idx.oid = i.indexrelid
    JOIN LATERAL unnest(i.indkey) WITH ORDINALITY AS ord(attnum, ordinality) ON true
    JOIN pg_attribute AS att ON att.attrelid = tbl.oid AND att.attnum = ord.attnum
    WHERE ns.nspname = $1
      AND tbl.relname = $2
    GROUP BY idx.relname, i.indisunique
    ORDER BY idx.relname
"""

DATA_TYPES: tuple[str, ...] = (
    "smallint",
    "integer",
    "bigint",
    "serial",
    "bigserial",
    "integer identity",
    "bigint identity",
    "decimal",
    "decimal(10,2)",
    "decimal(18,2)",
    "numeric",
    "real",
    "double precision",
    "varchar(255)",
    "varchar(100)",
    "varchar(50)",
    "character varying",
    "char(10)",
    "text",
    "bytea",
    "boolean",
    "date",
    "time",
    "timestamp with time zone",
    "timestamp without time zone",
    "interval",
    "uuid",
    "json",
    "jsonb",
    "int4range",
    "int8range",
    "numrange",
    "tsrange",
    "tstzrange",
    "daterange",
    "integer[]",
    "text[]",
    "boolean[]",
)

_IDENTITY_TYPES = {
    "INTEGER IDENTITY": "INTEGER GENERATED BY DEFAULT AS IDENTITY",
    "BIGINT IDENTITY": "BIGINT GENERATED BY DEFAULT AS IDENTITY",
}


def quote_identifier(identifier: str) -> str:
    """Quote a Postgres identifier, doubling embedded double quotes."""

    return '"' + identifier.replace('"', '""') + '"'


def table_ref(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def build_where_clause(
    filters: Sequence[TableFilter] | None,
    params: list[Any],
    start_index: int,
) -> tuple[str | None, int]:
    """Translate filters into a WHERE body; return it with the next placeholder index."""

    next_index = start_index
    clauses: list[str] = []
    for condition in filters or ():
        column = quote_identifier(condition.column)
        if condition.operator is FilterOperator.IN:
            if not condition.value:
                continue
            placeholders = []
            for value in condition.value:
                placeholders.append(f"${next_index}")
                params.append(value)
                next_index += 1
            clauses.append(f"{column} IN ({', '.join(placeholders)})")
        elif condition.operator is FilterOperator.IS:
            clauses.append(f"{column} IS {normalize_is_value(condition.value)}")
        else:
            params.append(condition.value)
            clauses.append(f"{column} {condition.operator.value} ${next_index}")
            next_index += 1
    return (" AND ".join(clauses) if clauses else None), next_index


def build_table_data_query(options: TableDataOptions) -> tuple[str, list[Any]]:
    """SELECT a page of rows; `limit=None` drops LIMIT/OFFSET entirely."""

    params: list[Any] = []
    query = f"SELECT * FROM {table_ref(options.schema, options.table)}"
    clause, next_index = build_where_clause(options.filters, params, 1)
    if clause:
        query += f" WHERE {clause}"
    order_by = render_order_by(options.sort_rules, quote_identifier)
    if order_by:
        query += f" ORDER BY {order_by}"
    if options.limit is not None:
        query += f" LIMIT ${next_index} OFFSET ${next_index + 1}"
        params.extend((options.limit, options.offset))
    return query, params


def build_table_count_query(options: TableDataOptions) -> tuple[str, list[Any]]:
    params: list[Any] = []
    query = f"SELECT COUNT(*) AS total FROM {table_ref(options.schema, options.table)}"
    clause, _ = build_where_clause(options.filters, params, 1)
    if clause:
        query += f" WHERE {clause}"
    return query, params


def _primary_key_predicate(
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
    params: list[Any],
    start_index: int,
) -> str:
    conditions = []
    for offset, column in enumerate(primary_key_columns):
        params.append(primary_key_values[column])
        conditions.append(f"{quote_identifier(column)} = ${start_index + offset}")
    return " AND ".join(conditions)


def build_update_cell_query(
    schema: str,
    table: str,
    column_to_update: str,
    new_value: Any,
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    params: list[Any] = [new_value]
    where = _primary_key_predicate(primary_key_columns, primary_key_values, params, 2)
    query = f"UPDATE {table_ref(schema, table)} SET {quote_identifier(column_to_update)} = $1 WHERE {where}"
    return query, params


def build_delete_row_query(
    schema: str,
    table: str,
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    params: list[Any] = []
    where = _primary_key_predicate(primary_key_columns, primary_key_values, params, 1)
    return f"DELETE FROM {table_ref(schema, table)} WHERE {where}", params


def build_insert_row_query(schema: str, table: str, values: Mapping[str, Any]) -> tuple[str, list[Any]]:
    columns = ", ".join(quote_identifier(name) for name in values)
    placeholders = ", ".join(f"${index}" for index in range(1, len(values) + 1))
    query = f"INSERT INTO {table_ref(schema, table)} ({columns}) VALUES ({placeholders})"
    return query, list(values.values())


def build_column_definition(column: ColumnDefinition) -> str:
    type_ = check_type_expression(column)
    definition = f"{quote_identifier(column.name)} {_IDENTITY_TYPES.get(type_, type_)}"
    if column.nullable is False:
        definition += " NOT NULL"
    elif column.nullable is True:
        definition += " NULL"
    if column.default_value is not None:
        definition += f" DEFAULT {column.default_value}"
    if column.is_unique:
        definition += " UNIQUE"
    if column.foreign_key:
        reference = column.foreign_key
        definition += f" REFERENCES {quote_identifier(reference.table)}({quote_identifier(reference.column)})"
        if reference.on_delete:
            definition += f" ON DELETE {reference.on_delete.value}"
        if reference.on_update:
            definition += f" ON UPDATE {reference.on_update.value}"
    return definition


def build_create_table_query(options: CreateTableOptions) -> str:
    require_columns(options.columns)
    parts = [build_column_definition(column) for column in options.columns]
    primary_keys = [quote_identifier(column.name) for column in options.columns if column.is_primary_key]
    if primary_keys:
        parts.append(f"PRIMARY KEY ({', '.join(primary_keys)})")
    return f"CREATE TABLE {table_ref(options.schema, options.table)} ({', '.join(parts)})"


def build_drop_table_query(schema: str, table: str) -> str:
    return f"DROP TABLE IF EXISTS {table_ref(schema, table)}"


def literal(value: Any) -> str:
    return sql_literal(value, bytes_literal=lambda raw: f"'\\x{raw.hex()}'::bytea")


__all__ = [
    "DATA_TYPES",
    "build_column_definition",
    "build_create_table_query",
    "build_delete_row_query",
    "build_drop_table_query",
    "build_insert_row_query",
    "build_table_count_query",
    "build_table_data_query",
    "build_update_cell_query",
    "build_where_clause",
    "literal",
    "quote_identifier",
    "table_ref",
]
