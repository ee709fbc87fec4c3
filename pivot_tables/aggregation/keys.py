from __future__ import annotations

from typing import Sequence

from ..domain.types import KEY_SEPARATOR
from .errors import PivotConfigError
from .models import GroupKey, split_fields
from .records import Record


def normalize_group_fields(group_fields: str | Sequence[str]) -> list[str]:
    """Accept ``["CARRIER", "ORIGIN"]`` or the joined form ``"CARRIER|ORIGIN"``."""
    fields = list(split_fields(group_fields, KEY_SEPARATOR))
    if not fields:
        raise PivotConfigError("At least one group field is required")
    return fields


def group_label(group_fields: Sequence[str]) -> str:
    return KEY_SEPARATOR.join(group_fields)


def build_key(row: Record, group_fields: Sequence[str]) -> GroupKey:
    """Derive the row's group key from the named text fields, in order.

    Raises MissingFieldError for an absent field and TypeMismatchError for a
    field that is not text-typed.
    """
    if not group_fields:
        raise PivotConfigError("At least one group field is required")
    return GroupKey(tuple(row.text(f) for f in group_fields))
