from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_SOURCE_NAME_ENV = "TELEMETRY_SOURCE_NAME"
_SOURCE_PATH_ENV = "TELEMETRY_PERSISTENCE_PATH"
_TIMESTAMP_UNIT_ENV = "TELEMETRY_TIMESTAMP_UNIT"
_TIMEZONE_ENV = "ANALYTICS_TIMEZONE"
_DROP_EMPTY_ENV = "SERIES_DROP_EMPTY"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TIMESTAMP_UNITS = {"seconds", "milliseconds"}
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    source_name: str
    source_persistence_path: Optional[str]
    timestamp_unit: str
    timezone: str
    drop_empty_readings: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_timestamp_unit(default: str) -> str:
    candidate = _read_str_env(_TIMESTAMP_UNIT_ENV, default).lower()
    return candidate if candidate in _TIMESTAMP_UNITS else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        source_name=_read_str_env(_SOURCE_NAME_ENV, "environmental_data"),
        source_persistence_path=_read_optional_env(_SOURCE_PATH_ENV, "./tmp/telemetry.json"),
        timestamp_unit=_read_timestamp_unit("seconds"),
        timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        drop_empty_readings=_read_bool(_DROP_EMPTY_ENV, False),
        log_level=_read_log_level("INFO"),
    )
