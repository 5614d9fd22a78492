"""Quote- and parenthesis-aware scanner deciding whether raw SQL can be paginated.

The scanner never validates SQL. It only answers two questions about the text a
user typed: is there more than one top-level statement, and which keyword does
the (main) statement start with. A query is paginated only when it is a single
plain SELECT, optionally preceded by a WITH block.
"""

from __future__ import annotations

import re

_TRAILING_SEMICOLONS = re.compile(r";+\s*$")
_QUOTES = ("'", '"', "`")


def normalize_query(query: str) -> str:
    """Drop a trailing terminator so the statement can be wrapped in a subquery.

    The text is cut at its first top-level `;` when nothing but whitespace,
    comments or further semicolons follows it. Otherwise only semicolons at the
    very end are removed.
    """

    index = _top_level_semicolon(query)
    if index != -1:
        rest = index + 1
        while True:
            rest = _skip_noise(query, rest)
            if rest < len(query) and query[rest] == ";":
                rest += 1
                continue
            break
        if rest >= len(query):
            return query[:index].rstrip()
    return _TRAILING_SEMICOLONS.sub("", query)


def skip_quoted_string(text: str, start: int, quote_char: str) -> int:
    """Return the index just past the quoted run opening at `start`.

    Two consecutive quote characters inside the run are an escaped quote. An
    unterminated run consumes the rest of the text.
    """

    if start >= len(text) or text[start] != quote_char:
        return start
    index = start + 1
    length = len(text)
    while index < length:
        if text[index] == quote_char:
            index += 1
            if index >= length or text[index] != quote_char:
                return index
        index += 1
    return index


def skip_comment(text: str, start: int) -> int:
    """Return the index past a `--` or `/* */` comment starting at `start`."""

    if text.startswith("--", start):
        end = text.find("\n", start)
        return len(text) if end == -1 else end + 1
    if text.startswith("/*", start):
        end = text.find("*/", start + 2)
        return len(text) if end == -1 else end + 2
    return start


def skip_parenthesized_section(text: str, start: int) -> int:
    """Return the index past the balanced `(...)` span opening at `start`."""

    if start >= len(text) or text[start] != "(":
        return start
    depth = 1
    index = start + 1
    length = len(text)
    while index < length and depth > 0:
        char = text[index]
        if char in _QUOTES:
            index = skip_quoted_string(text, index, char)
            continue
        after_comment = skip_comment(text, index)
        if after_comment != index:
            index = after_comment
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        index += 1
    return index


def _skip_noise(text: str, index: int) -> int:
    length = len(text)
    while index < length:
        if text[index].isspace():
            index += 1
            continue
        after_comment = skip_comment(text, index)
        if after_comment == index:
            break
        index = after_comment
    return index


def _top_level_semicolon(query: str) -> int:
    index = 0
    length = len(query)
    while index < length:
        char = query[index]
        if char in _QUOTES:
            index = skip_quoted_string(query, index, char)
        elif char == "(":
            index = skip_parenthesized_section(query, index)
        elif char == ";":
            return index
        else:
            after_comment = skip_comment(query, index)
            index = after_comment if after_comment != index else index + 1
    return -1


def has_additional_statements(query: str) -> bool:
    """True when a top-level `;` is followed by anything but whitespace/comments."""

    index = _top_level_semicolon(query)
    return index != -1 and _skip_noise(query, index + 1) < len(query)


class _Cursor:
    """Tiny reader over the statement text used to walk a WITH prologue."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.index = 0

    def at(self, char: str) -> bool:
        self.index = _skip_noise(self.text, self.index)
        return self.index < len(self.text) and self.text[self.index] == char

    def word(self) -> str:
        self.index = _skip_noise(self.text, self.index)
        start = self.index
        while self.index < len(self.text) and (self.text[self.index].isalnum() or self.text[self.index] == "_"):
            self.index += 1
        return self.text[start : self.index]

    def name(self) -> str:
        """Read a bare or quoted identifier."""

        if self.at('"') or self.at("`"):
            start = self.index
            self.index = skip_quoted_string(self.text, start, self.text[start])
            return self.text[start : self.index]
        return self.word()

    def parens(self) -> bool:
        if not self.at("("):
            return False
        self.index = skip_parenthesized_section(self.text, self.index)
        return True


def get_initial_statement_keyword(query: str) -> str | None:
    """Return the lower-cased keyword that starts the main statement.

    A leading WITH block is walked CTE by CTE (`name [(cols)] AS [[NOT] MATERIALIZED] (body)`,
    comma separated) and the keyword after it is returned. Malformed WITH
    blocks yield `None`.
    """

    cursor = _Cursor(query)
    first = cursor.word().lower()
    if first != "with":
        return first or None

    if cursor.word().lower() != "recursive":
        cursor = _Cursor(query)
        cursor.word()

    while True:
        if not cursor.name():
            return None
        if cursor.at("("):
            cursor.parens()
        if cursor.word().lower() != "as":
            return None
        marker = cursor.word().lower()
        if marker == "not":
            marker = cursor.word().lower()
        if marker and marker != "materialized":
            return None
        if not cursor.parens():
            return None
        if cursor.at(","):
            cursor.index += 1
            continue
        break

    keyword = cursor.word().lower()
    return keyword or None


def is_selectable_query(query: str) -> bool:
    """True iff `query` is a single statement whose main keyword is SELECT."""

    normalized = normalize_query(query.strip())
    if not normalized:
        return False
    if has_additional_statements(normalized):
        return False
    return get_initial_statement_keyword(normalized) == "select"


__all__ = [
    "get_initial_statement_keyword",
    "has_additional_statements",
    "is_selectable_query",
    "normalize_query",
    "skip_comment",
    "skip_parenthesized_section",
    "skip_quoted_string",
]
