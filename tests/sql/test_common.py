"""Tests for export rendering shared by both dialects."""

from __future__ import annotations

import base64
from datetime import date
from decimal import Decimal

from dbdesk.sql.common import encode_export, render_csv, render_insert_statements, sql_literal


def test_render_csv_quotes_fields_and_leaves_null_empty() -> None:
    rows = [
        {"id": 1, "name": 'Ada "the countess"', "note": None},
        {"id": 2, "name": "Grace", "note": "a,b"},
    ]

    content = render_csv(["id", "name", "note"], rows)

    assert content.splitlines() == [
        '"id","name","note"',
        '"1","Ada ""the countess""",',
        '"2","Grace","a,b"',
    ]


def test_sql_literal_handles_common_types() -> None:
    def as_hex(raw: bytes) -> str:
        return f"X'{raw.hex()}'"

    assert sql_literal(False, bytes_literal=as_hex) == "FALSE"
    assert sql_literal(Decimal("1.50"), bytes_literal=as_hex) == "1.50"
    assert sql_literal(date(2024, 1, 2), bytes_literal=as_hex) == "'2024-01-02'"
    assert sql_literal({"k": "it's"}, bytes_literal=as_hex) == "'{\"k\": \"it''s\"}'"


def test_render_insert_statements_one_per_row() -> None:
    content = render_insert_statements(
        '"public"."users"',
        ['"id"', '"name"'],
        ["id", "name"],
        [{"id": 1, "name": "Ada"}, {"id": 2, "name": None}],
        lambda value: sql_literal(value, bytes_literal=bytes.hex),
    )

    assert content.splitlines() == [
        'INSERT INTO "public"."users" ("id", "name") VALUES (1, \'Ada\');',
        'INSERT INTO "public"."users" ("id", "name") VALUES (2, NULL);',
    ]


def test_encode_export_base64_encodes_utf8() -> None:
    result = encode_export("naïve", "public.users.csv", "text/csv")

    assert base64.b64decode(result.base64_content).decode("utf-8") == "naïve"
    assert result.filename == "public.users.csv"
    assert result.mime_type == "text/csv"
