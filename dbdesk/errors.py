"""Error kinds raised across the adapter layer."""

from __future__ import annotations

from dataclasses import dataclass


class DBDeskError(RuntimeError):
    """Base error for everything raised by dbdesk itself."""


class ValidationError(DBDeskError, ValueError):
    """Raised when a request fails a precondition before touching the database."""


class DBConnectionError(DBDeskError):
    """Raised when a pool cannot be created or validated."""


class NotConnectedError(DBConnectionError):
    """Raised when an adapter is used before `connect()` succeeded."""


class QueryError(DBDeskError):
    """Raised when the driver fails to execute a statement."""


class UnknownAdapterError(DBDeskError, LookupError):
    """Raised when no adapter factory is registered for a database type."""


class ProfileNotFoundError(DBDeskError, LookupError):
    """Raised when a connection profile id is unknown."""


@dataclass(frozen=True, slots=True)
class SanitizedError:
    """Plain-data error handed to callers outside the adapter layer."""

    name: str
    message: str


def sanitize_error(error: object) -> SanitizedError:
    """Strip an exception down to a name and message safe to show to users."""

    if isinstance(error, DBDeskError):
        return SanitizedError(name=type(error).__name__, message=str(error))
    if isinstance(error, Exception):
        return SanitizedError(name="Error", message=str(error))
    return SanitizedError(name="Error", message="An unexpected error occurred")


__all__ = [
    "DBConnectionError",
    "DBDeskError",
    "NotConnectedError",
    "ProfileNotFoundError",
    "QueryError",
    "SanitizedError",
    "UnknownAdapterError",
    "ValidationError",
    "sanitize_error",
]
