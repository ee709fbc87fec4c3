"""Per-group running statistics."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from .errors import PivotConfigError
from .models import Accumulator, GroupKey, PivotGroup
from .values import as_number

logger = logging.getLogger(__name__)


class AggregationTable:
    """Maps each group key to one accumulator per value field.

    Accumulators are positionally aligned with ``value_fields`` and are only
    created when a row maps to a previously unseen key, so every entry has a
    count of at least one.
    """

    def __init__(self, value_fields: Sequence[str]) -> None:
        if not value_fields:
            raise PivotConfigError("At least one value field is required")
        self._value_fields = tuple(value_fields)
        self._groups: dict[GroupKey, list[Accumulator]] = {}

    @property
    def value_fields(self) -> tuple[str, ...]:
        return self._value_fields

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, key: object) -> bool:
        return key in self._groups

    def update(self, key: GroupKey, values: Sequence[Any]) -> None:
        """Add one row's value-field values to the group's accumulators.

        ``values`` holds NumberValues or plain numbers aligned with the value
        fields. Every value is checked before any accumulator is touched.
        """
        if len(values) != len(self._value_fields):
            raise PivotConfigError(
                f"Expected {len(self._value_fields)} value(s), got {len(values)}"
            )
        numbers = [as_number(f, v) for f, v in zip(self._value_fields, values)]

        accumulators = self._groups.get(key)
        if accumulators is None:
            accumulators = [Accumulator() for _ in self._value_fields]
            self._groups[key] = accumulators
        for acc, x in zip(accumulators, numbers):
            acc.add(x)

    def finalize(self) -> list[PivotGroup]:
        """Return finalized groups sorted ascending by key text."""
        ordered = sorted(self._groups, key=GroupKey.sort_key)
        logger.debug("Finalizing %d group(s) x %d value field(s)", len(ordered), len(self._value_fields))
        return [
            PivotGroup(key=key, accumulators=tuple(acc.finalized() for acc in self._groups[key]))
            for key in ordered
        ]
