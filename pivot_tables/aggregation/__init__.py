"""Flat group-by pivot aggregation: filter rows, key them, accumulate sum/count/mean."""
from .errors import (
    PivotError,
    PivotConfigError,
    MissingFieldError,
    TypeMismatchError,
    InvariantViolationError,
    SourceUnavailableError,
    SinkUnavailableError,
)
from .values import FieldValue, NumberValue, TextValue, as_number, as_text, tag_value
from .records import CsvRecord, Record, TypedRecord, as_record
from .models import (
    Accumulator,
    FieldPredicate,
    FilterSpec,
    GroupKey,
    PivotGroup,
    PivotRequest,
    PivotResult,
)
from .filters import passes
from .keys import build_key, group_label, normalize_group_fields
from .table import AggregationTable
from .scan import fold_rows, scan_to_pivot
from .in_memory import in_memory_pivot
from .validator import validate_request, validate_result

__all__ = [
    "PivotError",
    "PivotConfigError",
    "MissingFieldError",
    "TypeMismatchError",
    "InvariantViolationError",
    "SourceUnavailableError",
    "SinkUnavailableError",
    "FieldValue",
    "NumberValue",
    "TextValue",
    "as_number",
    "as_text",
    "tag_value",
    "CsvRecord",
    "Record",
    "TypedRecord",
    "as_record",
    "Accumulator",
    "FieldPredicate",
    "FilterSpec",
    "GroupKey",
    "PivotGroup",
    "PivotRequest",
    "PivotResult",
    "passes",
    "build_key",
    "group_label",
    "normalize_group_fields",
    "AggregationTable",
    "fold_rows",
    "scan_to_pivot",
    "in_memory_pivot",
    "validate_request",
    "validate_result",
]
