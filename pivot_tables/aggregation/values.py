"""Tagged field values and their checked projections."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from ..domain.types import ValueKind
from .errors import TypeMismatchError


@dataclass(frozen=True)
class TextValue:
    value: str
    kind: ClassVar[ValueKind] = "text"


@dataclass(frozen=True)
class NumberValue:
    value: float
    kind: ClassVar[ValueKind] = "numeric"


FieldValue = Union[TextValue, NumberValue]


def describe(value: Any) -> str:
    """Short type label used in TypeMismatchError messages."""
    if isinstance(value, (TextValue, NumberValue)):
        return value.kind
    return type(value).__name__


def tag_value(field: str, raw: Any) -> FieldValue:
    """Wrap a plain Python value in its tagged form.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(raw, (TextValue, NumberValue)):
        return raw
    if isinstance(raw, str):
        return TextValue(raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return NumberValue(float(raw))
    raise TypeMismatchError(field, "text or numeric", describe(raw))


def as_text(field: str, value: Any) -> str:
    if isinstance(value, TextValue):
        return value.value
    raise TypeMismatchError(field, "text", describe(value))


def as_number(field: str, value: Any) -> float:
    if isinstance(value, NumberValue):
        return value.value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise TypeMismatchError(field, "numeric", describe(value))
