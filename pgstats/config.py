"""App configuration loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel

CONFIG_FILE = Path.home() / ".config" / "pgstats" / "config.toml"

LOG = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    store_path: str = "./db_connections.json"
    status_timeout: float = 3.0
    connect_timeout: float = 5.0
    log_level: str = "WARNING"

    def with_store_path(self, path: str) -> AppConfig:
        """Return a copy pointing at a different profile store."""

        return self.model_copy(update={"store_path": path})

    def logging_level(self) -> int:
        """Numeric logging level for `log_level`."""

        return getattr(logging, self.log_level, logging.WARNING)


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config file", extra={"path": str(CONFIG_FILE), "error": str(exc)})
        return AppConfig()
    return AppConfig(**data)


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    store_path = raw.get("store_path")
    if isinstance(store_path, str) and store_path:
        data["store_path"] = store_path
    for key in ("status_timeout", "connect_timeout"):
        value = raw.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            data[key] = float(value)
    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in _LOG_LEVELS:
        data["log_level"] = log_level.upper()
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "load_config"]
