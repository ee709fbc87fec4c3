from __future__ import annotations


class PivotError(Exception):
    """Base error class for pivot aggregation."""


class PivotConfigError(PivotError, ValueError):
    """Raised when the caller-supplied configuration is invalid."""


class MissingFieldError(PivotError, KeyError):
    """Raised when a configured field name is absent from a row."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Field '{field}' not found in row")

    def __str__(self) -> str:
        return str(self.args[0])


class TypeMismatchError(PivotError, TypeError):
    """Raised when a value's type tag does not match what an operation expects."""

    def __init__(self, field: str, expected: str, actual: str) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"Field '{field}' expected {expected} value, got {actual}")


class InvariantViolationError(PivotError):
    """Raised when an internal invariant is broken (e.g. finalizing a zero count)."""


class SourceUnavailableError(PivotError):
    """Raised when the record source cannot be opened or read."""


class SinkUnavailableError(PivotError):
    """Raised when the output destination cannot be created or written."""
