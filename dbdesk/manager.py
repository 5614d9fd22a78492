"""Connection manager: profile CRUD plus the live adapter cache."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

from .adapters import AdapterRegistry, build_default_registry
from .adapters.base import DBAdapter, SQLAdapter, is_sql_adapter
from .config import AppConfig, load_config
from .errors import ProfileNotFoundError
from .models import (
    ConnectionProfile,
    DatabaseType,
    DBConnectionOptions,
    validate_create_connection_input,
)
from .storage import ProfileStore

LOG = logging.getLogger(__name__)


class ConnectionManager:
    """Owns connection profiles and at most one live adapter per profile id.

    Profiles and live connections share the id keyspace but not their
    lifetimes: deleting a profile leaves any live connection alone (use
    `forget_profile` to do both) and disconnecting never deletes a profile.
    Every profile mutation schedules a write of the whole profile map; write
    failures are logged and never undo the in-memory change.
    """

    def __init__(self, registry: AdapterRegistry, *, store: ProfileStore | None = None) -> None:
        self._registry = registry
        self._store = store
        self._profiles: dict[str, ConnectionProfile] = store.read() if store else {}
        self._connections: dict[str, DBAdapter] = {}
        self._connect_locks: dict[str, asyncio.Lock] = {}
        self._persist_lock = asyncio.Lock()
        self._pending_writes: set[asyncio.Task[None]] = set()

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    # Profiles -----------------------------------------------------------

    def create_profile(self, name: str, db_type: DatabaseType | str, options: Mapping[str, Any] | DBConnectionOptions) -> ConnectionProfile:
        clean_name, kind, clean_options = validate_create_connection_input(
            {"name": name, "type": db_type, "options": options}
        )
        profile_id = str(uuid.uuid4())
        while profile_id in self._profiles:
            profile_id = str(uuid.uuid4())
        profile = ConnectionProfile(id=profile_id, name=clean_name, type=kind, options=clean_options)
        self._profiles[profile_id] = profile
        LOG.info("Profile created", extra={"profile_id": profile_id, "type": kind.value})
        self._schedule_persist()
        return profile

    def get_profile(self, profile_id: str) -> ConnectionProfile | None:
        return self._profiles.get(profile_id)

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles.values())

    def update_profile(
        self,
        profile_id: str,
        *,
        name: str | None = None,
        db_type: DatabaseType | str | None = None,
        options: Mapping[str, Any] | DBConnectionOptions | None = None,
    ) -> ConnectionProfile:
        """Apply a partial update; changed options are re-validated for the profile's type."""

        current = self._require_profile(profile_id)
        payload = {
            "name": current.name if name is None else name,
            "type": current.type if db_type is None else db_type,
            "options": current.options if options is None else options,
        }
        clean_name, kind, clean_options = validate_create_connection_input(payload)
        updated = current.model_copy(
            update={
                "name": clean_name,
                "type": kind,
                "options": clean_options,
                "updated_at": datetime.now(tz=timezone.utc),
            }
        )
        self._profiles[profile_id] = updated
        LOG.info("Profile updated", extra={"profile_id": profile_id})
        self._schedule_persist()
        return updated

    def delete_profile(self, profile_id: str) -> bool:
        """Remove a profile; live connections for the id are left to the caller."""

        if self._profiles.pop(profile_id, None) is None:
            return False
        LOG.info("Profile deleted", extra={"profile_id": profile_id})
        self._schedule_persist()
        return True

    async def forget_profile(self, profile_id: str) -> bool:
        """Disconnect any live connection for the profile, then delete it."""

        await self.disconnect_connection(profile_id)
        return self.delete_profile(profile_id)

    def _require_profile(self, profile_id: str) -> ConnectionProfile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise ProfileNotFoundError(f"Connection profile '{profile_id}' not found")
        return profile

    # Persistence --------------------------------------------------------

    def _schedule_persist(self) -> None:
        if self._store is None:
            return
        snapshot = dict(self._profiles)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                self._store.write_sync(snapshot)
            except Exception:
                LOG.warning("Failed to persist profiles", exc_info=True, extra={"path": str(self._store.path)})
            return
        task = loop.create_task(self._persist(snapshot))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist(self, snapshot: dict[str, ConnectionProfile]) -> None:
        assert self._store is not None
        async with self._persist_lock:
            try:
                await self._store.write(snapshot)
            except Exception:
                LOG.warning("Failed to persist profiles", exc_info=True, extra={"path": str(self._store.path)})

    async def flush(self) -> None:
        """Wait until every scheduled profile write has finished."""

        while self._pending_writes:
            await asyncio.gather(*tuple(self._pending_writes))

    # Live connections ---------------------------------------------------

    async def create_connection(
        self,
        profile_id: str,
        db_type: DatabaseType | str,
        options: Mapping[str, Any] | DBConnectionOptions,
    ) -> DBAdapter:
        """Return the live adapter for `profile_id`, connecting a new one if needed.

        An adapter is cached only after `connect()` succeeds; on failure it is
        disconnected best-effort and the original error propagates.
        """

        adapter = self._connections.get(profile_id)
        if adapter is not None:
            return adapter
        async with self._lock_for(profile_id):
            adapter = self._connections.get(profile_id)
            if adapter is not None:
                return adapter
            adapter = self._registry.create_adapter(db_type, options)
            try:
                await adapter.connect()
            except Exception:
                try:
                    await adapter.disconnect()
                except Exception:
                    LOG.debug("Cleanup after failed connect also failed", exc_info=True, extra={"profile_id": profile_id})
                raise
            self._connections[profile_id] = adapter
        LOG.info("Connection opened", extra={"profile_id": profile_id})
        return adapter

    async def connect_profile(self, profile_id: str) -> DBAdapter:
        """Connect a stored profile and record when it was last connected."""

        profile = self._require_profile(profile_id)
        adapter = await self.create_connection(profile.id, profile.type, profile.options)
        current = self._profiles.get(profile_id)
        if current is not None:
            self._profiles[profile_id] = current.model_copy(
                update={"last_connected_at": datetime.now(tz=timezone.utc)}
            )
            self._schedule_persist()
        return adapter

    def get_connection(self, profile_id: str) -> DBAdapter | None:
        return self._connections.get(profile_id)

    def get_sql_connection(self, profile_id: str) -> SQLAdapter | None:
        adapter = self._connections.get(profile_id)
        if adapter is not None and is_sql_adapter(adapter):
            return adapter
        return None

    def is_connected(self, profile_id: str) -> bool:
        return profile_id in self._connections

    def list_connections(self) -> list[str]:
        return list(self._connections)

    async def disconnect_connection(self, profile_id: str) -> None:
        """Drop and disconnect the live adapter for `profile_id`.

        Waits for an in-flight `create_connection` on the same id so the adapter
        it produces is the one that gets closed.
        """

        async with self._lock_for(profile_id):
            adapter = self._connections.pop(profile_id, None)
        if adapter is None:
            return
        await self._disconnect_quietly(profile_id, adapter)

    close_connection = disconnect_connection

    async def close_all(self) -> None:
        """Disconnect every live adapter; one failure never blocks the rest."""

        profile_ids = dict.fromkeys([*self._connections, *self._connect_locks])
        await asyncio.gather(*(self.disconnect_connection(profile_id) for profile_id in profile_ids))

    def _lock_for(self, profile_id: str) -> asyncio.Lock:
        # Entries are never removed: a waiter must always share the holder's lock.
        return self._connect_locks.setdefault(profile_id, asyncio.Lock())

    async def shutdown(self) -> None:
        await self.close_all()
        await self.flush()

    async def _disconnect_quietly(self, profile_id: str, adapter: DBAdapter) -> None:
        try:
            await adapter.disconnect()
        except Exception:
            LOG.warning("Error while disconnecting", exc_info=True, extra={"profile_id": profile_id})
        else:
            LOG.info("Connection closed", extra={"profile_id": profile_id})


def create_connection_manager(config: AppConfig | None = None) -> ConnectionManager:
    """Wire the default registry and the on-disk profile store."""

    config = config or load_config()
    registry = build_default_registry(config.pool, page_size=config.default_page_size)
    return ConnectionManager(registry, store=ProfileStore(config.profiles_path))


__all__ = ["ConnectionManager", "create_connection_manager"]
