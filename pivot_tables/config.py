from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any
import os

from dotenv import load_dotenv

load_dotenv()


def _getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _normalize_mode(raw: str | None) -> str:
    value = (raw or "scan").strip().lower()
    return value if value in {"scan", "memory"} else "scan"


def _normalize_row_limit(value: int) -> int:
    return value if value >= -1 else -1


@dataclass(frozen=True)
class Settings:
    data_dir: str
    output_dir: str
    default_row_limit: int
    csv_encoding: str
    csv_delimiter: str
    default_mode: str
    log_level: str


def load_settings() -> Settings:
    return Settings(
        data_dir=os.getenv("PIVOT_DATA_DIR", "data"),
        output_dir=os.getenv("PIVOT_OUTPUT_DIR", "output"),
        default_row_limit=_normalize_row_limit(_getenv_int("PIVOT_DEFAULT_ROW_LIMIT", -1)),
        csv_encoding=os.getenv("PIVOT_CSV_ENCODING", "utf-8"),
        csv_delimiter=os.getenv("PIVOT_CSV_DELIMITER", ","),
        default_mode=_normalize_mode(os.getenv("PIVOT_DEFAULT_MODE")),
        log_level=os.getenv("PIVOT_LOG_LEVEL", "INFO").upper(),
    )


settings = load_settings()

_RUNTIME_OVERRIDES: dict[str, Any] = {}


def get_settings() -> Settings:
    if not _RUNTIME_OVERRIDES:
        return settings
    return replace(settings, **_RUNTIME_OVERRIDES)


def update_settings(overrides: dict[str, Any]) -> Settings:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "default_mode":
            normalized[key] = _normalize_mode(str(value))
        elif key == "default_row_limit":
            normalized[key] = _normalize_row_limit(int(value))
        elif key == "log_level":
            normalized[key] = str(value).upper()
        else:
            normalized[key] = value
    _RUNTIME_OVERRIDES.update(normalized)
    return get_settings()


def reset_settings() -> Settings:
    _RUNTIME_OVERRIDES.clear()
    return get_settings()
