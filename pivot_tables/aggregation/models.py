from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator, model_validator

from ..domain.types import (
    AGGREGATE_SUFFIXES,
    KEY_SEPARATOR,
    NO_ROW_LIMIT,
    PivotMode,
    ValueKind,
)
from .errors import InvariantViolationError, PivotConfigError
from .filters import passes
from .records import Record


# ------------------------------------------------------------------
# Group keys and accumulators
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GroupKey:
    """Ordered group-field values; ``text`` is the canonical pipe-joined form."""
    parts: tuple[str, ...]

    @property
    def text(self) -> str:
        return KEY_SEPARATOR.join(self.parts)

    def sort_key(self) -> tuple[str, tuple[str, ...]]:
        return (self.text, self.parts)

    def __str__(self) -> str:
        return self.text


@dataclass
class Accumulator:
    sum: float = 0.0
    count: int = 0
    mean: float | None = None

    def add(self, x: float) -> None:
        self.sum += x
        self.count += 1

    def finalized(self) -> "Accumulator":
        if self.count == 0:
            raise InvariantViolationError("Cannot finalize an accumulator with zero count")
        return Accumulator(sum=self.sum, count=self.count, mean=self.sum / self.count)


@dataclass(frozen=True)
class PivotGroup:
    key: GroupKey
    accumulators: tuple[Accumulator, ...]


def format_decimal(x: float) -> str:
    return f"{x:.6f}"


@dataclass(frozen=True)
class PivotResult:
    """Finalized pivot table, ordered by group key text."""
    value_fields: tuple[str, ...]
    group_fields: tuple[str, ...]
    group_label: str
    groups: tuple[PivotGroup, ...]
    rows_scanned: int = 0
    rows_aggregated: int = 0
    elapsed_seconds: float = field(default=0.0, compare=False)
    _by_text: dict[str, PivotGroup] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_text.update((g.key.text, g) for g in self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[PivotGroup]:
        return iter(self.groups)

    def keys(self) -> list[str]:
        return [g.key.text for g in self.groups]

    def get(self, key_text: str) -> PivotGroup | None:
        """Look up a group by its joined key text.

        Groups are kept apart by their value tuples, so ``("x|y", "z")`` and
        ``("x", "y|z")`` are two groups that both render as ``x|y|z`` and both
        appear in ``rows()``. For such a text, ``get`` returns the later one
        in key order; use ``get_parts`` to address either exactly.
        """
        return self._by_text.get(key_text)

    def get_parts(self, *parts: str) -> PivotGroup | None:
        for group in self.groups:
            if group.key.parts == parts:
                return group
        return None

    def header(self) -> list[str]:
        row = [self.group_label]
        for value_field in self.value_fields:
            row.extend(f"{value_field}_{suffix}" for suffix in AGGREGATE_SUFFIXES)
        return row

    def rows(self) -> Iterator[list[str]]:
        for group in self.groups:
            row = [group.key.text]
            for acc in group.accumulators:
                row.extend([format_decimal(acc.sum), str(acc.count), format_decimal(acc.mean)])
            yield row

    def as_nested(self) -> dict[str, dict[str, Accumulator]]:
        """``{key_text: {value_field: Accumulator}}``; a repeated value field keeps its last column."""
        return {
            g.key.text: dict(zip(self.value_fields, g.accumulators))
            for g in self.groups
        }

    def to_records(self) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        for group in self.groups:
            rec: dict[str, Any] = {self.group_label: group.key.text}
            for name, acc in zip(self.value_fields, group.accumulators):
                rec[f"{name}_Sum"] = acc.sum
                rec[f"{name}_Count"] = acc.count
                rec[f"{name}_Mean"] = acc.mean
            records.append(rec)
        return records

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame(self.to_records(), columns=self.header())
        return df.set_index(self.group_label)


# ------------------------------------------------------------------
# Filters
# ------------------------------------------------------------------

def _infer_kind(values: Sequence[Any]) -> ValueKind:
    if not values:
        return "text"
    is_number = [isinstance(v, (int, float)) and not isinstance(v, bool) for v in values]
    if all(is_number):
        return "numeric"
    if not any(is_number):
        return "text"
    raise ValueError(f"mixed text and numeric filter values: {list(values)!r}")


class FieldPredicate(BaseModel):
    """Set of values a single field is tested against, typed text or numeric.

    Accepts a bare list (kind inferred from the values) or
    ``{"kind": ..., "values": [...]}``.
    """
    model_config = ConfigDict(frozen=True)

    kind: ValueKind
    values: tuple[Union[str, float], ...] = ()

    _members: frozenset = PrivateAttr(default=frozenset())

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple, set, frozenset)):
            data = {"values": list(data)}
        if not isinstance(data, dict):
            return data
        values = list(data.get("values") or [])
        kind = data.get("kind") or _infer_kind(values)
        if kind == "numeric":
            for v in values:
                if isinstance(v, bool) or not isinstance(v, (int, float)):
                    raise ValueError(f"numeric predicate values must be numbers, got {v!r}")
            values = [float(v) for v in values]
        elif kind == "text":
            for v in values:
                if not isinstance(v, str):
                    raise ValueError(f"text predicate values must be strings, got {v!r}")
        return {"kind": kind, "values": tuple(values)}

    def model_post_init(self, __context: Any) -> None:
        self._members = frozenset(self.values)

    def __contains__(self, value: object) -> bool:
        return value in self._members


PredicateMap = dict[str, FieldPredicate]


def _typed_map(raw: Mapping[str, Sequence[Any]] | None, kind: ValueKind) -> PredicateMap:
    if not raw:
        return {}
    try:
        return {name: FieldPredicate(kind=kind, values=tuple(vals)) for name, vals in raw.items()}
    except ValidationError as exc:
        raise PivotConfigError(f"Invalid {kind} filter values: {exc}") from exc


def _merge_side(left: PredicateMap, right: PredicateMap, side: str) -> PredicateMap:
    merged = dict(left)
    for name, predicate in right.items():
        existing = merged.get(name)
        if existing is None:
            merged[name] = predicate
            continue
        if existing.kind != predicate.kind:
            raise PivotConfigError(
                f"Field '{name}' has both {existing.kind} and {predicate.kind} {side} filters"
            )
        if side == "include":
            # both sets must admit the value
            kept = tuple(v for v in existing.values if v in predicate)
        else:
            kept = existing.values + tuple(v for v in predicate.values if v not in existing)
        merged[name] = FieldPredicate(kind=existing.kind, values=kept)
    return merged


class FilterSpec(BaseModel):
    """Include/exclude predicates keyed by field name.

    A field absent from both sides is unconstrained. Text and numeric
    predicates can be mixed freely across fields.
    """
    model_config = ConfigDict(frozen=True)

    include: PredicateMap = Field(default_factory=dict)
    exclude: PredicateMap = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_nulls(cls, values: Any) -> Any:
        if isinstance(values, dict):
            values = dict(values)
            if values.get("include") is None:
                values["include"] = {}
            if values.get("exclude") is None:
                values["exclude"] = {}
        return values

    @classmethod
    def from_typed(
        cls,
        text_include: Mapping[str, Sequence[str]] | None = None,
        text_exclude: Mapping[str, Sequence[str]] | None = None,
        numeric_include: Mapping[str, Sequence[float]] | None = None,
        numeric_exclude: Mapping[str, Sequence[float]] | None = None,
    ) -> "FilterSpec":
        include = _merge_side(_typed_map(text_include, "text"), _typed_map(numeric_include, "numeric"), "include")
        exclude = _merge_side(_typed_map(text_exclude, "text"), _typed_map(numeric_exclude, "numeric"), "exclude")
        return cls(include=include, exclude=exclude)

    def merge(self, other: "FilterSpec") -> "FilterSpec":
        return FilterSpec(
            include=_merge_side(self.include, other.include, "include"),
            exclude=_merge_side(self.exclude, other.exclude, "exclude"),
        )

    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    def fields(self) -> list[str]:
        return list(dict.fromkeys([*self.include, *self.exclude]))

    def passes(self, row: Record) -> bool:
        return passes(row, self.include, self.exclude)


# ------------------------------------------------------------------
# Caller-facing request
# ------------------------------------------------------------------

def split_fields(raw: Any, separator: str) -> Any:
    if isinstance(raw, str):
        return [part.strip() for part in raw.split(separator) if part.strip()]
    return raw


class PivotRequest(BaseModel):
    """One pivot over one delimited source.

    ``group_fields`` also accepts the pipe-joined form (``"CARRIER|ORIGIN"``)
    and ``value_fields`` a comma-joined one. ``row_limit``/``mode`` left as
    None fall back to the configured defaults.
    """
    source_path: str = Field(..., min_length=1)
    value_fields: list[str] = Field(..., min_length=1)
    group_fields: list[str] = Field(..., min_length=1)
    group_label: str | None = None
    row_limit: int | None = None
    output_path: str | None = None
    include: PredicateMap = Field(default_factory=dict)
    exclude: PredicateMap = Field(default_factory=dict)
    mode: PivotMode | None = None
    text_fields: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_nulls(cls, values: Any) -> Any:
        if isinstance(values, dict):
            values = dict(values)
            for key in ("include", "exclude"):
                if values.get(key) is None:
                    values[key] = {}
            if values.get("text_fields") is None:
                values["text_fields"] = []
        return values

    @field_validator("group_fields", mode="before")
    @classmethod
    def _split_group_fields(cls, v: Any) -> Any:
        return split_fields(v, KEY_SEPARATOR)

    @field_validator("value_fields", mode="before")
    @classmethod
    def _split_value_fields(cls, v: Any) -> Any:
        return split_fields(v, ",")

    @field_validator("row_limit")
    @classmethod
    def _check_row_limit(cls, v: int | None) -> int | None:
        if v is not None and v < NO_ROW_LIMIT:
            raise ValueError(f"row_limit must be -1 (unlimited) or >= 0, got {v}")
        return v

    @property
    def filters(self) -> FilterSpec:
        return FilterSpec(include=self.include, exclude=self.exclude)

    @property
    def label(self) -> str:
        return self.group_label or KEY_SEPARATOR.join(self.group_fields)


def check_row_limit(row_limit: int) -> None:
    if isinstance(row_limit, bool) or not isinstance(row_limit, int) or row_limit < NO_ROW_LIMIT:
        raise PivotConfigError(f"row_limit must be -1 (unlimited) or >= 0, got {row_limit!r}")
