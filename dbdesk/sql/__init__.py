"""Dialect query builders and the statement classifier."""

from __future__ import annotations

from . import mysql, postgres
from .classifier import (
    get_initial_statement_keyword,
    has_additional_statements,
    is_selectable_query,
    normalize_query,
    skip_parenthesized_section,
    skip_quoted_string,
)

__all__ = [
    "get_initial_statement_keyword",
    "has_additional_statements",
    "is_selectable_query",
    "mysql",
    "normalize_query",
    "postgres",
    "skip_parenthesized_section",
    "skip_quoted_string",
]
