"""Domain layer for pivot_tables."""
from .types import ValueKind, PivotMode, KEY_SEPARATOR, NO_ROW_LIMIT, AGGREGATE_SUFFIXES, ErrorCode

__all__ = ["ValueKind", "PivotMode", "KEY_SEPARATOR", "NO_ROW_LIMIT", "AGGREGATE_SUFFIXES", "ErrorCode"]
