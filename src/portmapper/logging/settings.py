from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOG_FORMATS = frozenset({"json", "text"})


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    level: int = logging.INFO
    log_format: str = "json"
    console_enabled: bool = True
    log_dir: str | None = None
    rotate_when: str = "midnight"
    backup_count: int = 7

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        level = _parse_level(
            _get_env_str("PORTMAPPER_LOG_LEVEL", "INFO").upper())
        log_format = _get_env_str("PORTMAPPER_LOG_FORMAT", "json").lower()
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid PORTMAPPER_LOG_FORMAT: {log_format!r}")
        return cls(
            level=level,
            log_format=log_format,
            console_enabled=_get_env_bool("PORTMAPPER_LOG_CONSOLE", True),
            log_dir=_get_env_path("PORTMAPPER_LOG_DIR"),
            rotate_when=_get_env_str("PORTMAPPER_LOG_ROTATE_WHEN", "midnight"),
            backup_count=_get_env_int("PORTMAPPER_LOG_BACKUP_COUNT", 7),
        )


def load_logging_settings() -> LoggingSettings:
    return LoggingSettings.from_env()


def _parse_level(level_name: str) -> int:
    level = logging.getLevelName(level_name)
    if isinstance(level, int):
        return level
    raise ValueError(f"Invalid PORTMAPPER_LOG_LEVEL: {level_name!r}")


def _get_env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"Invalid bool env var {name}={value!r}")


def _get_env_path(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()
