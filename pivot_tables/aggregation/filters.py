"""Row-level include/exclude filtering."""
from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from .records import Record

if TYPE_CHECKING:
    from .models import FieldPredicate


def passes(
    row: Record,
    include_spec: Mapping[str, "FieldPredicate"],
    exclude_spec: Mapping[str, "FieldPredicate"],
) -> bool:
    """Return True when ``row`` satisfies every include and no exclude predicate.

    Include predicates are checked first, each side in insertion order, and
    evaluation stops at the first failing field. A numeric predicate reads the
    field through ``row.number`` and a text predicate through ``row.text``, so a
    value whose tag does not match the predicate raises TypeMismatchError
    instead of being coerced.
    """
    for field, predicate in include_spec.items():
        if not matches(row, field, predicate):
            return False
    for field, predicate in exclude_spec.items():
        if matches(row, field, predicate):
            return False
    return True


def matches(row: Record, field: str, predicate: "FieldPredicate") -> bool:
    if predicate.kind == "numeric":
        return row.number(field) in predicate
    return row.text(field) in predicate
