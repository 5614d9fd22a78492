"""Connection options and persisted connection profiles."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, assert_never

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

PostgresSslMode = Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"]


class DatabaseType(str, Enum):
    """Dialects the adapter layer knows how to talk to."""

    POSTGRES = "postgres"
    MYSQL = "mysql"


class _SQLConnectionOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    host: NonEmptyStr
    port: int = Field(ge=1, le=65535)
    database: NonEmptyStr
    user: NonEmptyStr
    password: NonEmptyStr


class PostgresConnectionOptions(_SQLConnectionOptions):
    """Options accepted by the Postgres adapter."""

    ssl_mode: PostgresSslMode | None = None


class MySQLConnectionOptions(_SQLConnectionOptions):
    """Options accepted by the MySQL adapter."""

    ssl: bool = False


DBConnectionOptions = PostgresConnectionOptions | MySQLConnectionOptions


def coerce_database_type(value: object) -> DatabaseType:
    """Return the `DatabaseType` for a raw value or raise `ValidationError`."""

    if isinstance(value, DatabaseType):
        return value
    try:
        return DatabaseType(str(value))
    except ValueError:
        raise ValidationError(f'Invalid database type "{value}"') from None


def validate_connection_options(db_type: DatabaseType | str, options: object) -> DBConnectionOptions:
    """Validate raw options for the given dialect."""

    kind = coerce_database_type(db_type)
    if isinstance(options, BaseModel):
        options = options.model_dump()
    if not isinstance(options, Mapping):
        raise ValidationError("Invalid SQL connection options: expected object")
    try:
        match kind:
            case DatabaseType.POSTGRES:
                return PostgresConnectionOptions.model_validate(options)
            case DatabaseType.MYSQL:
                return MySQLConnectionOptions.model_validate(options)
            case _:
                assert_never(kind)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


def validate_create_connection_input(payload: object) -> tuple[str, DatabaseType, DBConnectionOptions]:
    """Validate a `{name, type, options}` payload coming from a caller."""

    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid payload: expected object for connection details")
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Invalid value for "name": expected non-empty string')
    kind = coerce_database_type(payload.get("type"))
    options = validate_connection_options(kind, payload.get("options"))
    return name.strip(), kind, options


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ConnectionProfile(BaseModel):
    """Named, persisted set of connection parameters."""

    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr
    name: NonEmptyStr
    type: DatabaseType
    options: DBConnectionOptions
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_connected_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _options_match_type(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and "type" in data and "options" in data:
            data = dict(data)
            data["options"] = validate_connection_options(data["type"], data["options"])
        return data


def _describe(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "options"
        problems.append(f'"{field}": {error["msg"]}')
    return "Invalid connection options: " + "; ".join(problems)


__all__ = [
    "ConnectionProfile",
    "DBConnectionOptions",
    "DatabaseType",
    "MySQLConnectionOptions",
    "PostgresConnectionOptions",
    "PostgresSslMode",
    "coerce_database_type",
    "validate_connection_options",
    "validate_create_connection_input",
]
