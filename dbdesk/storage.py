"""JSON file store for connection profiles."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError as PydanticValidationError

from .models import ConnectionProfile

LOG = logging.getLogger(__name__)


class ProfileStore:
    """Reads and writes the full profile map as one JSON object keyed by id."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict[str, ConnectionProfile]:
        """Load stored profiles; a missing or unreadable file is an empty store."""

        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError:
            LOG.warning("Unable to read profile store", exc_info=True, extra={"path": str(self._path)})
            return {}
        if not text.strip():
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            LOG.warning("Profile store is corrupt; starting empty", extra={"path": str(self._path)})
            return {}
        if not isinstance(raw, dict):
            LOG.warning("Profile store has unexpected shape; starting empty", extra={"path": str(self._path)})
            return {}
        profiles: dict[str, ConnectionProfile] = {}
        for key, entry in raw.items():
            try:
                profile = ConnectionProfile.model_validate(entry)
            except (PydanticValidationError, ValueError):
                LOG.warning("Skipping invalid stored profile", extra={"profile_id": key})
                continue
            profiles[profile.id] = profile
        return profiles

    async def write(self, profiles: Mapping[str, ConnectionProfile]) -> None:
        payload = self.dumps(profiles)
        await asyncio.to_thread(self._write_text, payload)

    def write_sync(self, profiles: Mapping[str, ConnectionProfile]) -> None:
        self._write_text(self.dumps(profiles))

    @staticmethod
    def dumps(profiles: Mapping[str, ConnectionProfile]) -> str:
        data = {profile_id: profile.model_dump(mode="json") for profile_id, profile in profiles.items()}
        return json.dumps(data, indent=2, sort_keys=True)

    def _write_text(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=".profiles-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload + "\n")
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise


__all__ = ["ProfileStore"]
