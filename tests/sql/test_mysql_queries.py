"""Tests for the MySQL statement builders."""

from __future__ import annotations

import pytest

from dbdesk.sql import mysql
from dbdesk.types import ColumnDefinition, CreateTableOptions, SortRule, TableDataOptions, TableFilter


def test_quote_identifier_doubles_backticks() -> None:
    assert mysql.quote_identifier("we`ird") == "`we``ird`"


def test_builder_output_escapes_percent_in_identifiers() -> None:
    query, params = mysql.build_delete_row_query("shop", "100%_off", ["id"], {"id": 1})

    assert query == "DELETE FROM `shop`.`100%%_off` WHERE `id` = %s"
    assert params == [1]


def test_where_clause_uses_unindexed_placeholders() -> None:
    params: list[object] = []
    filters = (
        TableFilter("status", "=", "active"),
        TableFilter("id", "IN", (4, 5)),
        TableFilter("archived", "IS", "FALSE"),
        TableFilter("name", "ILIKE", "ada%"),
    )

    clause = mysql.build_where_clause(filters, params)

    assert clause == "`status` = %s AND `id` IN (%s, %s) AND `archived` IS FALSE AND `name` LIKE %s"
    assert params == ["active", 4, 5, "ada%"]


def test_table_data_query_with_pagination() -> None:
    options = TableDataOptions(
        schema="shop",
        table="orders",
        sort_rules=(SortRule("created_at", "DESC"),),
        limit=10,
        offset=20,
    )

    query, params = mysql.build_table_data_query(options)

    assert query == "SELECT * FROM `shop`.`orders` ORDER BY `created_at` DESC LIMIT %s OFFSET %s"
    assert params == [10, 20]


def test_update_cell_query() -> None:
    query, params = mysql.build_update_cell_query("shop", "orders", "total", 9.5, ["id"], {"id": 3})

    assert query == "UPDATE `shop`.`orders` SET `total` = %s WHERE `id` = %s"
    assert params == [9.5, 3]


def test_create_table_query_escapes_default_percent() -> None:
    options = CreateTableOptions(
        schema="shop",
        table="promos",
        columns=(
            ColumnDefinition(name="id", type="int", nullable=False, is_primary_key=True),
            ColumnDefinition(name="label", type="varchar(50)", default_value="'50%'"),
        ),
    )

    query = mysql.build_create_table_query(options)

    assert query == (
        "CREATE TABLE `shop`.`promos` (`id` INT NOT NULL, `label` VARCHAR(50) DEFAULT '50%%', PRIMARY KEY (`id`))"
    )


@pytest.mark.parametrize(
    ("column_type", "expected"),
    [
        ("enum('small','medium','large')", ("small", "medium", "large")),
        ("ENUM('a', 'b', 'a')", ("a", "b")),
        ("enum('it''s','x')", ("it's", "x")),
        ("enum('a,b','c')", ("a,b", "c")),
        ("varchar(20)", None),
        ("enum('broken", None),
        ("enum(a,b)", None),
        (None, None),
    ],
)
def test_parse_enum_values(column_type: str | None, expected: tuple[str, ...] | None) -> None:
    assert mysql.parse_enum_values(column_type) == expected


def test_literal_renders_bytes_as_hex() -> None:
    assert mysql.literal(b"\x00\x10") == "X'0010'"
    assert mysql.literal(3) == "3"


def test_catalog_lists_are_nul_separated() -> None:
    for query in (mysql.LIST_CONSTRAINTS, mysql.LIST_INDEXES):
        assert "GROUP_CONCAT(" in query
        assert query.count("GROUP_CONCAT(") == query.count("SEPARATOR X'00')")
