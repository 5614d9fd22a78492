"""Tests for the JSON profile store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from dbdesk.models import ConnectionProfile, DatabaseType
from dbdesk.storage import ProfileStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _profile(profile_id: str = "p1") -> ConnectionProfile:
    return ConnectionProfile(
        id=profile_id,
        name="Local",
        type=DatabaseType.POSTGRES,
        options={"host": "localhost", "port": 5432, "database": "app", "user": "postgres", "password": "pw"},
    )


def test_read_missing_file_is_empty(tmp_path: Path) -> None:
    assert ProfileStore(tmp_path / "missing.json").read() == {}


@pytest.mark.parametrize("content", ["", "{not json", "[1, 2]"])
def test_read_tolerates_corrupt_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "profiles.json"
    path.write_text(content)

    assert ProfileStore(path).read() == {}


def test_read_skips_invalid_entries(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "profiles.json"
    good = _profile("good").model_dump(mode="json")
    path.write_text(json.dumps({"good": good, "bad": {"id": "bad", "name": "x", "type": "oracle"}}))

    with caplog.at_level(logging.WARNING, logger="dbdesk.storage"):
        profiles = ProfileStore(path).read()

    assert list(profiles) == ["good"]
    assert "Skipping invalid stored profile" in caplog.text


@pytest.mark.anyio
async def test_write_creates_directories_and_round_trips(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path / "nested" / "profiles.json")
    profile = _profile()

    await store.write({profile.id: profile})

    assert store.read() == {profile.id: profile}
    assert [p.name for p in store.path.parent.iterdir()] == ["profiles.json"]


def test_write_sync_replaces_existing_content(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path / "profiles.json")
    store.write_sync({"p1": _profile("p1")})

    store.write_sync({})

    assert store.read() == {}
