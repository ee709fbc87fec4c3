"""
Core type definitions and constants.
"""
from __future__ import annotations

from typing import Literal

ValueKind = Literal["text", "numeric"]
PivotMode = Literal["scan", "memory"]

KEY_SEPARATOR = "|"
NO_ROW_LIMIT = -1
AGGREGATE_SUFFIXES = ("Sum", "Count", "Mean")


class ErrorCode:
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    SINK_ERROR = "SINK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
