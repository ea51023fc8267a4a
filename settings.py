from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DB_PATH_ENV = "SENSOR_DB_PATH"
_MAIN_URL_ENV = "SENSOR_MAIN_URL"
_SECONDARY_URL_ENV = "SENSOR_SECONDARY_URL"
_INTERVAL_ENV = "SENSOR_COLLECTION_INTERVAL"
_REQUEST_TIMEOUT_ENV = "SENSOR_REQUEST_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    database_path: Optional[str]
    main_sensor_url: Optional[str]
    secondary_sensor_url: Optional[str]
    collection_interval: float
    request_timeout: float
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


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
        database_path=_read_optional_env(_DB_PATH_ENV, "./tmp/readings.sqlite3"),
        main_sensor_url=_read_optional_env(_MAIN_URL_ENV, None),
        secondary_sensor_url=_read_optional_env(_SECONDARY_URL_ENV, None),
        collection_interval=_read_positive_float(_INTERVAL_ENV, 30.0),
        request_timeout=_read_positive_float(_REQUEST_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
