"""Registry mapping database types onto adapter factories."""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import UnknownAdapterError
from ..models import DatabaseType, DBConnectionOptions, coerce_database_type
from .base import AdapterFactory, DBAdapter

LOG = logging.getLogger(__name__)


class AdapterRegistry:
    """Collects adapter factories keyed by database type."""

    def __init__(self, factories: Iterable[tuple[DatabaseType | str, AdapterFactory]] = ()) -> None:
        self._factories: dict[DatabaseType, AdapterFactory] = {}
        for db_type, factory in factories:
            self.register_adapter(db_type, factory)

    def register_adapter(self, db_type: DatabaseType | str, factory: AdapterFactory) -> None:
        """Register a factory; a later registration for the same type wins."""

        key = coerce_database_type(db_type)
        if key in self._factories:
            LOG.debug("Replacing adapter factory", extra={"type": key.value})
        self._factories[key] = factory

    def list_adapters(self) -> list[DatabaseType]:
        """Return the registered database types in registration order."""

        return list(self._factories)

    def get_factory(self, db_type: DatabaseType | str) -> AdapterFactory | None:
        try:
            key = coerce_database_type(db_type)
        except ValueError:
            return None
        return self._factories.get(key)

    def create_adapter(self, db_type: DatabaseType | str, options: DBConnectionOptions) -> DBAdapter:
        """Build an unconnected adapter for `db_type`."""

        factory = self.get_factory(db_type)
        if factory is None:
            raise UnknownAdapterError(f"No adapter registered for type '{db_type}'")
        return factory(options)


__all__ = ["AdapterRegistry"]
