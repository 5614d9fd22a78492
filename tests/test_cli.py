"""Tests for the command-line entry point."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest

from dbdesk import cli
from dbdesk.adapters import AdapterKind, AdapterRegistry
from dbdesk.manager import ConnectionManager
from dbdesk.storage import ProfileStore
from dbdesk.types import QueryResult, RunQueryOptions


class _ScriptedAdapter:
    kind = AdapterKind.SQL

    def __init__(self, options: Any) -> None:
        self.options = options
        self.queries: list[tuple[str, RunQueryOptions | None]] = []
        self.disconnected = False

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        self.disconnected = True

    async def run_query(self, query: str, options: RunQueryOptions | None = None) -> QueryResult:
        self.queries.append((query, options))
        return QueryResult(
            rows=({"id": 1, "name": "Ada"}, {"id": 2, "name": None}),
            columns=("id", "name"),
            row_count=2,
            execution_time=1.0,
            total_row_count=2,
            limit=5,
            offset=0,
        )

    async def list_schemas(self) -> tuple[str, ...]:
        return ("public", "audit")

    async def list_tables(self, schema: str) -> tuple[str, ...]:
        return (f"{schema}_users",)


@pytest.fixture
def adapters() -> list[_ScriptedAdapter]:
    return []


@pytest.fixture
def manager(tmp_path: Path, adapters: list[_ScriptedAdapter]) -> ConnectionManager:
    def _factory(options: Any) -> _ScriptedAdapter:
        adapter = _ScriptedAdapter(options)
        adapters.append(adapter)
        return adapter

    registry = AdapterRegistry([("postgres", _factory), ("mysql", _factory)])
    return ConnectionManager(registry, store=ProfileStore(tmp_path / "profiles.json"))


def _add_profile(manager: ConnectionManager) -> str:
    out = io.StringIO()
    code = cli.main(
        [
            "add-profile",
            "Local",
            "--type",
            "postgres",
            "--port",
            "5432",
            "--database",
            "app",
            "--user",
            "postgres",
            "--password",
            "pw",
            "--ssl-mode",
            "require",
        ],
        manager=manager,
        out=out,
    )
    assert code == 0
    return out.getvalue().strip()


def test_add_and_list_profiles(manager: ConnectionManager, tmp_path: Path) -> None:
    profile_id = _add_profile(manager)
    out = io.StringIO()

    assert cli.main(["profiles"], manager=manager, out=out) == 0

    assert out.getvalue().strip() == f"{profile_id}\tLocal\tpostgres\tlocalhost:5432/app"
    assert manager.get_profile(profile_id).options.ssl_mode == "require"
    assert profile_id in ProfileStore(tmp_path / "profiles.json").read()


def test_remove_profile(manager: ConnectionManager, capsys: pytest.CaptureFixture[str]) -> None:
    profile_id = _add_profile(manager)

    assert cli.main(["remove-profile", profile_id], manager=manager) == 0
    assert cli.main(["remove-profile", profile_id], manager=manager) == 1

    assert "not found" in capsys.readouterr().err


def test_query_prints_rows_and_passes_pagination(manager: ConnectionManager, adapters: list[_ScriptedAdapter]) -> None:
    profile_id = _add_profile(manager)
    out = io.StringIO()

    code = cli.main(["query", profile_id, "SELECT * FROM users", "--limit", "5"], manager=manager, out=out)

    assert code == 0
    lines = out.getvalue().splitlines()
    assert lines[:3] == ["id\tname", "1\tAda", "2\tNULL"]
    assert lines[3] == "(2 rows, 1.0 ms, 2 total, offset 0)"
    assert adapters[0].queries == [("SELECT * FROM users", RunQueryOptions(limit=5, offset=None))]
    assert adapters[0].disconnected is True


def test_schemas_and_tables(manager: ConnectionManager) -> None:
    profile_id = _add_profile(manager)
    schemas = io.StringIO()
    tables = io.StringIO()

    assert cli.main(["schemas", profile_id], manager=manager, out=schemas) == 0
    assert cli.main(["tables", profile_id, "public"], manager=manager, out=tables) == 0

    assert schemas.getvalue().split() == ["public", "audit"]
    assert tables.getvalue().strip() == "public_users"


def test_unknown_profile_exits_with_sanitized_error(
    manager: ConnectionManager, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli.main(["schemas", "missing"], manager=manager)

    assert code == 1
    assert capsys.readouterr().err.strip() == "ProfileNotFoundError: Connection profile 'missing' not found"


def test_schemas_rejects_adapter_without_sql_capability(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    class _QueryOnlyAdapter(_ScriptedAdapter):
        kind = AdapterKind.BASE

    registry = AdapterRegistry([("postgres", _QueryOnlyAdapter)])
    manager = ConnectionManager(registry, store=ProfileStore(tmp_path / "profiles.json"))
    profile_id = _add_profile(manager)

    assert cli.main(["schemas", profile_id], manager=manager) == 1
    assert cli.main(["query", profile_id, "SELECT 1"], manager=manager, out=io.StringIO()) == 0

    assert "does not support schema browsing" in capsys.readouterr().err
