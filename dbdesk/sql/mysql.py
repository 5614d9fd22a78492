"""MySQL catalog queries and statement builders.

aiomysql binds parameters with the unindexed `%s` paramstyle and formats the
statement with `%` whenever a parameter tuple is passed, so every identifier
quoted into builder output has its `%` doubled. Builder output must always be
executed with a (possibly empty) parameter tuple.
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

PLACEHOLDER = "%s"

TEST_CONNECTION = "SELECT 1"

LIST_SCHEMAS = """
    SELECT schema_name AS schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('mysql', 'information_schema', 'performance_schema', 'sys')
    ORDER BY schema_name
"""

LIST_TABLES = """
    SELECT table_name AS table_name
    FROM information_schema.tables
    WHERE table_schema = %s
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

LIST_COLUMNS = """
    SELECT
      c.ordinal_position AS ordinal_position,
      c.column_name AS column_name,
      c.data_type AS data_type,
      c.column_type AS column_type,
      c.is_nullable AS is_nullable,
      c.column_default AS column_default,
      CASE WHEN kcu.constraint_name IS NOT NULL THEN 1 ELSE 0 END AS is_primary_key,
      fk_kcu.constraint_name AS fk_constraint_name,
      fk_kcu.referenced_table_schema AS referenced_table_schema,
      fk_kcu.referenced_table_name AS referenced_table_name,
      fk_kcu.referenced_column_name AS referenced_column_name,
      rc.delete_rule AS delete_rule,
      rc.update_rule AS update_rule
    FROM information_schema.columns c
    LEFT JOIN information_schema.key_column_usage kcu
      ON c.table_schema = kcu.table_schema
      AND c.table_name = kcu.table_name
      AND c.column_name = kcu.column_name
      AND kcu.constraint_name = 'PRIMARY'
    LEFT JOIN information_schema.key_column_usage fk_kcu
      ON c.table_schema = fk_kcu.table_schema
      AND c.table_name = fk_kcu.table_name
      AND c.column_name = fk_kcu.column_name
      AND fk_kcu.referenced_table_name IS NOT NULL
    LEFT JOIN information_schema.referential_constraints rc
      ON fk_kcu.constraint_name = rc.constraint_name
      AND fk_kcu.constraint_schema = rc.constraint_schema
    WHERE c.table_schema = %s
      AND c.table_name = %s
    ORDER BY c.ordinal_position
"""

# Identifiers may hold any character but NUL, so catalog lists are NUL separated.
LIST_SEPARATOR = "\x00"
SESSION_SETUP = "SET SESSION group_concat_max_len = 1048576"

LIST_CONSTRAINTS = """
    SELECT
      tc.constraint_name AS constraint_name,
      tc.constraint_type AS constraint_type,
      GROUP_CONCAT(kcu.column_name ORDER BY kcu.ordinal_position SEPARATOR X'00') AS columns,
      kcu.referenced_table_schema AS foreign_table_schema,
      kcu.referenced_table_name AS foreign_table_name,
      GROUP_CONCAT(kcu.referenced_column_name ORDER BY kcu.ordinal_position SEPARATOR X'00') AS foreign_columns
    FROM information_schema.table_constraints tc
    LEFT JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
      AND tc.table_schema = kcu.table_schema
      AND tc.table_name = kcu.table_name
    WHERE tc.table_schema = %s
      AND tc.table_name = %s
    GROUP BY
      tc.constraint_name,
      tc.constraint_type,
      kcu.referenced_table_schema,
      kcu.referenced_table_name
    ORDER BY tc.constraint_name
"""

LIST_INDEXES = """
    SELECT
      s.index_name AS index_name,
      GROUP_CONCAT(s.column_name ORDER BY s.seq_in_index SEPARATOR X'00') AS column_names,
      CASE WHEN s.non_unique = 0 THEN 1 ELSE 0 END AS is_unique
    FROM information_schema.statistics s
    WHERE s.table_schema = %s
      AND s.table_name = %s
      AND s.index_name != 'PRIMARY'
    GROUP BY s.index_name, s.non_unique
    ORDER BY s.index_name
"""

DATA_TYPES: tuple[str, ...] = (
    "tinyint",
    "smallint",
    "mediumint",
    "int",
    "bigint",
    "decimal",
    "decimal(10,2)",
    "decimal(18,2)",
    "float",
    "double",
    "char(10)",
    "varchar(255)",
    "varchar(100)",
    "varchar(50)",
    "text",
    "tinytext",
    "mediumtext",
    "longtext",
    "binary(10)",
    "varbinary(255)",
    "blob",
    "longblob",
    "boolean",
    "date",
    "time",
    "datetime",
    "timestamp",
    "year",
    "json",
)


def quote_identifier(identifier: str) -> str:
    """Quote a MySQL identifier with backticks, doubling embedded backticks."""

    return "`" + identifier.replace("`", "``") + "`"


def _quote(identifier: str) -> str:
    return quote_identifier(identifier).replace("%", "%%")


def table_ref(schema: str, table: str) -> str:
    return f"{_quote(schema)}.{_quote(table)}"


def parse_enum_values(column_type: str | None) -> tuple[str, ...] | None:
    """Parse `enum('a','b')` into ordered, de-duplicated labels.

    Anything that is not a well-formed enum type string yields `None`.
    """

    if not column_type:
        return None
    text = column_type.strip()
    if not text.lower().startswith("enum(") or not text.endswith(")"):
        return None
    body = text[5:-1]
    values: list[str] = []
    index = 0
    length = len(body)
    while index < length:
        if body[index] != "'":
            return None
        index += 1
        chars: list[str] = []
        while True:
            if index >= length:
                return None
            char = body[index]
            if char == "'":
                if index + 1 < length and body[index + 1] == "'":
                    chars.append("'")
                    index += 2
                    continue
                index += 1
                break
            if char == "\\" and index + 1 < length:
                chars.append(body[index + 1])
                index += 2
                continue
            chars.append(char)
            index += 1
        value = "".join(chars)
        if value and value not in values:
            values.append(value)
        while index < length and body[index] == " ":
            index += 1
        if index < length:
            if body[index] != ",":
                return None
            index += 1
            while index < length and body[index] == " ":
                index += 1
            if index >= length:
                return None
    return tuple(values) or None


def build_where_clause(filters: Sequence[TableFilter] | None, params: list[Any]) -> str | None:
    """Translate filters into a WHERE body, appending bound values to `params`."""

    clauses: list[str] = []
    for condition in filters or ():
        column = _quote(condition.column)
        if condition.operator is FilterOperator.IN:
            if not condition.value:
                continue
            params.extend(condition.value)
            placeholders = ", ".join(PLACEHOLDER for _ in condition.value)
            clauses.append(f"{column} IN ({placeholders})")
        elif condition.operator is FilterOperator.IS:
            clauses.append(f"{column} IS {normalize_is_value(condition.value)}")
        else:
            # MySQL has no ILIKE; LIKE already follows the column collation.
            operator = "LIKE" if condition.operator is FilterOperator.ILIKE else condition.operator.value
            params.append(condition.value)
            clauses.append(f"{column} {operator} {PLACEHOLDER}")
    return " AND ".join(clauses) if clauses else None


def build_table_data_query(options: TableDataOptions) -> tuple[str, list[Any]]:
    """SELECT a page of rows; `limit=None` drops LIMIT/OFFSET entirely."""

    params: list[Any] = []
    query = f"SELECT * FROM {table_ref(options.schema, options.table)}"
    clause = build_where_clause(options.filters, params)
    if clause:
        query += f" WHERE {clause}"
    order_by = render_order_by(options.sort_rules, _quote)
    if order_by:
        query += f" ORDER BY {order_by}"
    if options.limit is not None:
        query += f" LIMIT {PLACEHOLDER} OFFSET {PLACEHOLDER}"
        params.extend((options.limit, options.offset))
    return query, params


def build_table_count_query(options: TableDataOptions) -> tuple[str, list[Any]]:
    params: list[Any] = []
    query = f"SELECT COUNT(*) AS total FROM {table_ref(options.schema, options.table)}"
    clause = build_where_clause(options.filters, params)
    if clause:
        query += f" WHERE {clause}"
    return query, params


def _primary_key_predicate(
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
    params: list[Any],
) -> str:
    params.extend(primary_key_values[column] for column in primary_key_columns)
    return " AND ".join(f"{_quote(column)} = {PLACEHOLDER}" for column in primary_key_columns)


def build_update_cell_query(
    schema: str,
    table: str,
    column_to_update: str,
    new_value: Any,
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    params: list[Any] = [new_value]
    where = _primary_key_predicate(primary_key_columns, primary_key_values, params)
    query = f"UPDATE {table_ref(schema, table)} SET {_quote(column_to_update)} = {PLACEHOLDER} WHERE {where}"
    return query, params


def build_delete_row_query(
    schema: str,
    table: str,
    primary_key_columns: Sequence[str],
    primary_key_values: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    params: list[Any] = []
    where = _primary_key_predicate(primary_key_columns, primary_key_values, params)
    return f"DELETE FROM {table_ref(schema, table)} WHERE {where}", params


def build_insert_row_query(schema: str, table: str, values: Mapping[str, Any]) -> tuple[str, list[Any]]:
    columns = ", ".join(_quote(name) for name in values)
    placeholders = ", ".join(PLACEHOLDER for _ in values)
    query = f"INSERT INTO {table_ref(schema, table)} ({columns}) VALUES ({placeholders})"
    return query, list(values.values())


def build_column_definition(column: ColumnDefinition) -> str:
    definition = f"{_quote(column.name)} {check_type_expression(column)}"
    if column.nullable is False:
        definition += " NOT NULL"
    elif column.nullable is True:
        definition += " NULL"
    if column.default_value is not None:
        definition += f" DEFAULT {column.default_value.replace('%', '%%')}"
    if column.is_unique:
        definition += " UNIQUE"
    if column.foreign_key:
        reference = column.foreign_key
        definition += f" REFERENCES {_quote(reference.table)}({_quote(reference.column)})"
        if reference.on_delete:
            definition += f" ON DELETE {reference.on_delete.value}"
        if reference.on_update:
            definition += f" ON UPDATE {reference.on_update.value}"
    return definition


def build_create_table_query(options: CreateTableOptions) -> str:
    require_columns(options.columns)
    parts = [build_column_definition(column) for column in options.columns]
    primary_keys = [_quote(column.name) for column in options.columns if column.is_primary_key]
    if primary_keys:
        parts.append(f"PRIMARY KEY ({', '.join(primary_keys)})")
    return f"CREATE TABLE {table_ref(options.schema, options.table)} ({', '.join(parts)})"


def build_drop_table_query(schema: str, table: str) -> str:
    return f"DROP TABLE IF EXISTS {table_ref(schema, table)}"


def literal(value: Any) -> str:
    return sql_literal(value, bytes_literal=lambda raw: f"X'{raw.hex()}'")


__all__ = [
    "DATA_TYPES",
    "PLACEHOLDER",
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
    "parse_enum_values",
    "quote_identifier",
    "table_ref",
]
