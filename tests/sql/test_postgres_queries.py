"""Tests for the Postgres statement builders."""

from __future__ import annotations

import pytest

from dbdesk.errors import ValidationError
from dbdesk.sql import postgres
from dbdesk.types import (
    ColumnDefinition,
    CreateTableOptions,
    ForeignKeyReference,
    ReferentialAction,
    SortRule,
    TableDataOptions,
    TableFilter,
)


def test_quote_identifier_doubles_embedded_quotes() -> None:
    assert postgres.quote_identifier('we"ird') == '"we""ird"'


def test_where_clause_threads_placeholder_index() -> None:
    params: list[object] = []
    filters = (
        TableFilter("status", "=", "active"),
        TableFilter("id", "IN", [1, 2, 3]),
        TableFilter("deleted_at", "IS", "null"),
        TableFilter("email", "ILIKE", "%@example.com"),
    )

    clause, next_index = postgres.build_where_clause(filters, params, 1)

    assert clause == (
        '"status" = $1 AND "id" IN ($2, $3, $4) AND "deleted_at" IS NULL AND "email" ILIKE $5'
    )
    assert params == ["active", 1, 2, 3, "%@example.com"]
    assert next_index == 6


def test_where_clause_skips_empty_in_list() -> None:
    params: list[object] = []

    clause, next_index = postgres.build_where_clause([TableFilter("id", "IN", [])], params, 1)

    assert clause is None
    assert params == []
    assert next_index == 1


def test_table_data_query_continues_numbering_for_pagination() -> None:
    options = TableDataOptions(
        schema="public",
        table="users",
        filters=(TableFilter("age", ">", 30),),
        sort_rules=(SortRule("name", "desc"), SortRule("id")),
        limit=25,
        offset=50,
    )

    query, params = postgres.build_table_data_query(options)

    assert query == (
        'SELECT * FROM "public"."users" WHERE "age" > $1 ORDER BY "name" DESC, "id" ASC LIMIT $2 OFFSET $3'
    )
    assert params == [30, 25, 50]


def test_table_data_query_without_limit_is_unbounded() -> None:
    query, params = postgres.build_table_data_query(TableDataOptions(schema="public", table="users", limit=None))

    assert query == 'SELECT * FROM "public"."users"'
    assert params == []


def test_count_query_reuses_filters() -> None:
    options = TableDataOptions(schema="s", table="t", filters=(TableFilter("a", "<>", 1),))

    query, params = postgres.build_table_count_query(options)

    assert query == 'SELECT COUNT(*) AS total FROM "s"."t" WHERE "a" <> $1'
    assert params == [1]


def test_update_cell_query_binds_value_first() -> None:
    query, params = postgres.build_update_cell_query(
        "public", "orders", "status", "shipped", ["tenant_id", "id"], {"tenant_id": 7, "id": 42}
    )

    assert query == 'UPDATE "public"."orders" SET "status" = $1 WHERE "tenant_id" = $2 AND "id" = $3'
    assert params == ["shipped", 7, 42]


def test_delete_and_insert_queries() -> None:
    delete, delete_params = postgres.build_delete_row_query("public", "users", ["id"], {"id": 5})
    insert, insert_params = postgres.build_insert_row_query("public", "users", {"name": "Ada", "age": 36})

    assert delete == 'DELETE FROM "public"."users" WHERE "id" = $1'
    assert delete_params == [5]
    assert insert == 'INSERT INTO "public"."users" ("name", "age") VALUES ($1, $2)'
    assert insert_params == ["Ada", 36]


def test_create_table_query_renders_columns_and_keys() -> None:
    options = CreateTableOptions(
        schema="public",
        table="orders",
        columns=(
            ColumnDefinition(name="id", type="integer identity", nullable=False, is_primary_key=True),
            ColumnDefinition(name="code", type="varchar(20)", is_unique=True, default_value="'new'"),
            ColumnDefinition(
                name="user_id",
                type="integer",
                foreign_key=ForeignKeyReference(table="users", column="id", on_delete=ReferentialAction.CASCADE),
            ),
        ),
    )

    query = postgres.build_create_table_query(options)

    assert query == (
        'CREATE TABLE "public"."orders" ('
        '"id" INTEGER GENERATED BY DEFAULT AS IDENTITY NOT NULL, '
        "\"code\" VARCHAR(20) DEFAULT 'new' UNIQUE, "
        '"user_id" INTEGER REFERENCES "users"("id") ON DELETE CASCADE, '
        'PRIMARY KEY ("id"))'
    )


def test_create_table_requires_columns() -> None:
    with pytest.raises(ValidationError, match="At least one column"):
        postgres.build_create_table_query(CreateTableOptions(schema="public", table="empty"))


def test_create_table_rejects_injected_type() -> None:
    options = CreateTableOptions(
        schema="public",
        table="t",
        columns=(ColumnDefinition(name="x", type="int; DROP TABLE users"),),
    )

    with pytest.raises(ValidationError, match="Invalid type"):
        postgres.build_create_table_query(options)


def test_drop_table_query() -> None:
    assert postgres.build_drop_table_query("public", "old") == 'DROP TABLE IF EXISTS "public"."old"'


def test_literal_renders_bytes_as_bytea() -> None:
    assert postgres.literal(b"\x01\xff") == "'\\x01ff'::bytea"
    assert postgres.literal("O'Brien") == "'O''Brien'"
    assert postgres.literal(None) == "NULL"
    assert postgres.literal(True) == "TRUE"


def test_constraint_catalog_keeps_declared_column_order() -> None:
    query = " ".join(postgres.LIST_CONSTRAINTS.split())

    assert "DISTINCT" not in query
    assert "array_agg(kcu.column_name::text ORDER BY kcu.ordinal_position)" in query
    assert "array_agg(ref.column_name::text ORDER BY kcu.ordinal_position)" in query
    assert "ref.ordinal_position = kcu.position_in_unique_constraint" in query
