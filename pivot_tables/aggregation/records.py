"""Row views consumed by the aggregators.

Two flavours share one read interface (``value``/``text``/``number``):

* ``CsvRecord`` wraps the raw cells of one delimited line. Every cell is
  text-tagged; ``number`` parses it on demand.
* ``TypedRecord`` wraps already-tagged values held in memory.
"""
from __future__ import annotations

from typing import Any, Iterator, Mapping, Protocol, Sequence

from .errors import MissingFieldError, TypeMismatchError
from .values import FieldValue, TextValue, as_number, as_text, tag_value


class Record(Protocol):
    def value(self, field: str) -> FieldValue: ...

    def text(self, field: str) -> str: ...

    def number(self, field: str) -> float: ...


class CsvRecord:
    """One data line of a delimited file, addressed through the shared header index."""

    __slots__ = ("_index", "_cells", "line_number")

    def __init__(self, index: Mapping[str, int], cells: Sequence[str], line_number: int = 0) -> None:
        self._index = index
        self._cells = cells
        self.line_number = line_number

    def __contains__(self, field: object) -> bool:
        return field in self._index

    def __repr__(self) -> str:
        return f"CsvRecord(line={self.line_number}, cells={list(self._cells)!r})"

    def keys(self) -> list[str]:
        return list(self._index)

    def value(self, field: str) -> FieldValue:
        return TextValue(self.text(field))

    def text(self, field: str) -> str:
        pos = self._index.get(field)
        if pos is None:
            raise MissingFieldError(field)
        # ragged rows: missing trailing cells read as empty
        return self._cells[pos] if pos < len(self._cells) else ""

    def number(self, field: str) -> float:
        cell = self.text(field)
        try:
            return float(cell)
        except ValueError:
            raise TypeMismatchError(field, "numeric", f"text {cell!r}") from None


class TypedRecord:
    """An in-memory row whose values already carry their type tag."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, FieldValue]) -> None:
        self._values = values

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TypedRecord":
        return cls({str(k): tag_value(str(k), v) for k, v in mapping.items()})

    def __contains__(self, field: object) -> bool:
        return field in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedRecord):
            return NotImplemented
        return dict(self._values) == dict(other._values)

    def __repr__(self) -> str:
        return f"TypedRecord({dict(self._values)!r})"

    def keys(self) -> list[str]:
        return list(self._values)

    def value(self, field: str) -> FieldValue:
        try:
            return self._values[field]
        except KeyError:
            raise MissingFieldError(field) from None

    def text(self, field: str) -> str:
        return as_text(field, self.value(field))

    def number(self, field: str) -> float:
        return as_number(field, self.value(field))


def as_record(row: Any) -> Record:
    """Accept a ready record or a plain mapping of field name to value."""
    if isinstance(row, (CsvRecord, TypedRecord)):
        return row
    if isinstance(row, Mapping):
        return TypedRecord.from_mapping(row)
    raise TypeError(f"Unsupported row type: {type(row).__name__}")
