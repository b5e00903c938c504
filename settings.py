from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_READINGS_TABLE_ENV = "READINGS_TABLE_NAME"
_READINGS_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_SETTINGS_TABLE_ENV = "SETTINGS_TABLE_NAME"
_SETTINGS_PATH_ENV = "SETTINGS_PERSISTENCE_PATH"
_DEFAULT_THRESHOLD_ENV = "DEFAULT_CRITICAL_THRESHOLD"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_CRITICAL_THRESHOLD = 90.0


@dataclass(frozen=True)
class Settings:
    readings_table_name: str
    readings_persistence_path: Optional[str]
    settings_table_name: str
    settings_persistence_path: Optional[str]
    default_threshold: float
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


def _read_threshold(default: float) -> float:
    value = os.getenv(_DEFAULT_THRESHOLD_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) and parsed >= 0 else default


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
        readings_table_name=_read_str_env(_READINGS_TABLE_ENV, "water_levels"),
        readings_persistence_path=_read_optional_env(
            _READINGS_PATH_ENV, "./tmp/water_levels.json"
        ),
        settings_table_name=_read_str_env(_SETTINGS_TABLE_ENV, "settings"),
        settings_persistence_path=_read_optional_env(
            _SETTINGS_PATH_ENV, "./tmp/settings.json"
        ),
        default_threshold=_read_threshold(DEFAULT_CRITICAL_THRESHOLD),
        log_level=_read_log_level("INFO"),
    )
