"""App configuration loading helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".config" / "dbdesk" / "config.toml"

USER_DATA_ENV = "DB_DESK_USER_DATA"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_profiles_path() -> Path:
    """Location of the profile store, honouring `DB_DESK_USER_DATA`."""

    base = os.environ.get(USER_DATA_ENV)
    root = Path(base) if base else Path.home()
    return root / ".dbdesk" / "profiles.json"


class PoolSettings(BaseModel):
    """Sizing and timeouts applied to every adapter pool."""

    max_size: int = Field(default=10, ge=1)
    connect_timeout: float = Field(default=30.0, gt=0)
    idle_timeout: float = Field(default=30.0, gt=0)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    profiles_path: Path = Field(default_factory=default_profiles_path)
    log_level: str = "WARNING"
    default_page_size: int = Field(default=50, ge=1)
    pool: PoolSettings = Field(default_factory=PoolSettings)


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    return AppConfig(**data)


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'profiles_path = "{config.profiles_path.as_posix()}"',
        f'log_level = "{config.log_level}"',
        f"default_page_size = {config.default_page_size}",
        "",
        "[pool]",
        f"max_size = {config.pool.max_size}",
        f"connect_timeout = {config.pool.connect_timeout}",
        f"idle_timeout = {config.pool.idle_timeout}",
    ]
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def configure_logging(config: AppConfig) -> None:
    """Route library logging to stderr at the configured level."""

    level = config.log_level.upper()
    logging.basicConfig(
        level=level if level in _LOG_LEVELS else "WARNING",
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    profiles_path = raw.get("profiles_path")
    if isinstance(profiles_path, str) and profiles_path:
        data["profiles_path"] = Path(profiles_path).expanduser()
    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in _LOG_LEVELS:
        data["log_level"] = log_level.upper()
    page_size = raw.get("default_page_size")
    if isinstance(page_size, int) and not isinstance(page_size, bool) and page_size > 0:
        data["default_page_size"] = page_size
    pool = raw.get("pool")
    if isinstance(pool, dict):
        settings: dict[str, object] = {}
        max_size = pool.get("max_size")
        if isinstance(max_size, int) and not isinstance(max_size, bool) and max_size > 0:
            settings["max_size"] = max_size
        for key in ("connect_timeout", "idle_timeout"):
            value = pool.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                settings[key] = float(value)
        data["pool"] = PoolSettings(**settings)
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "PoolSettings",
    "USER_DATA_ENV",
    "configure_logging",
    "default_profiles_path",
    "load_config",
    "save_config",
]
