"""Helpers shared by the Postgres and MySQL query builders."""

from __future__ import annotations

import base64
import json
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

from ..errors import ValidationError
from ..types import ColumnDefinition, ExportTableResult, IsValue, SortRule

Quote = Callable[[str], str]

_TYPE_EXPRESSION = re.compile(r"^[A-Za-z][A-Za-z0-9_ ,()\[\]]*$")


def normalize_is_value(value: IsValue | str) -> str:
    """Map an IS filter value onto its SQL literal."""

    match IsValue(value):
        case IsValue.NULL:
            return "NULL"
        case IsValue.NOT_NULL:
            return "NOT NULL"
        case IsValue.TRUE:
            return "TRUE"
        case IsValue.FALSE:
            return "FALSE"


def render_order_by(sort_rules: Iterable[SortRule], quote: Quote) -> str | None:
    terms = [
        f"{quote(rule.column)} {'DESC' if rule.descending else 'ASC'}"
        for rule in sort_rules
        if rule.column
    ]
    return ", ".join(terms) if terms else None


def check_type_expression(column: ColumnDefinition) -> str:
    """Return the column's type upper-cased, rejecting anything but a plain type."""

    type_ = column.type.strip()
    if not _TYPE_EXPRESSION.match(type_):
        raise ValidationError(f'Invalid type "{column.type}" for column "{column.name}"')
    return type_.upper()


def require_columns(columns: Sequence[ColumnDefinition]) -> None:
    if not columns:
        raise ValidationError("At least one column is required to create a table")


def render_csv(columns: Sequence[str], rows: Iterable[dict[str, Any]]) -> str:
    """Quote every non-null field, doubling embedded quotes; NULL stays empty."""

    lines = [",".join(_csv_field(name) for name in columns)]
    for row in rows:
        lines.append(",".join(_csv_field(row.get(name)) for name in columns))
    return "\n".join(lines)


def _csv_field(value: Any) -> str:
    if value is None:
        return ""
    return '"' + _text(value).replace('"', '""') + '"'


def sql_literal(value: Any, *, bytes_literal: Callable[[bytes], str]) -> str:
    """Render a Python value as a SQL literal for dump files."""

    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes_literal(bytes(value))
    return "'" + _text(value).replace("'", "''") + "'"


def render_insert_statements(
    target: str,
    quoted_columns: Sequence[str],
    columns: Sequence[str],
    rows: Iterable[dict[str, Any]],
    literal: Callable[[Any], str],
) -> str:
    column_list = ", ".join(quoted_columns)
    statements = []
    for row in rows:
        values = ", ".join(literal(row.get(name)) for name in columns)
        statements.append(f"INSERT INTO {target} ({column_list}) VALUES ({values});")
    return "\n".join(statements)


def encode_export(content: str, filename: str, mime_type: str) -> ExportTableResult:
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return ExportTableResult(base64_content=encoded, filename=filename, mime_type=mime_type)


def _text(value: Any) -> str:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


__all__ = [
    "check_type_expression",
    "encode_export",
    "normalize_is_value",
    "render_csv",
    "render_insert_statements",
    "render_order_by",
    "require_columns",
    "sql_literal",
]
