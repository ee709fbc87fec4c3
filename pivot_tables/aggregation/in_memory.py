"""Pivot aggregation over rows already loaded in memory."""
from __future__ import annotations

import dataclasses
import logging
import os
import time
from typing import Any, Iterable, Mapping, Sequence

from ..domain.types import NO_ROW_LIMIT
from .errors import PivotConfigError
from .keys import group_label as default_group_label, normalize_group_fields
from .models import FilterSpec, PivotResult
from .records import as_record
from .scan import fold_rows

logger = logging.getLogger(__name__)


def in_memory_pivot(
    rows: Sequence[Any],
    index_fields: str | Sequence[str],
    value_fields: Sequence[str],
    save_to_csv: bool = False,
    pivot_file_path: str | os.PathLike[str] | None = None,
    filters: FilterSpec | None = None,
    *,
    text_include: Mapping[str, Sequence[str]] | None = None,
    text_exclude: Mapping[str, Sequence[str]] | None = None,
    numeric_include: Mapping[str, Sequence[float]] | None = None,
    numeric_exclude: Mapping[str, Sequence[float]] | None = None,
    row_limit: int = NO_ROW_LIMIT,
    group_label: str | None = None,
) -> PivotResult:
    """Pivot an in-memory row collection.

    Rows may be TypedRecords, CsvRecords or plain mappings of field name to
    ``str``/``int``/``float``. A row is aggregated only when it passes every
    predicate: ``filters`` plus the four typed maps, which are merged into one
    FilterSpec. Naming the same field as both text and numeric on one side
    raises PivotConfigError.

    The finalized result is always returned; ``save_to_csv`` additionally
    writes it to ``pivot_file_path``.

    Args:
        rows: Ordered row collection.
        index_fields: Group fields, as a list or ``"A|B"``.
        value_fields: Numeric fields to sum/count/average.
        save_to_csv: Write the table to ``pivot_file_path`` when True.
        pivot_file_path: Output path, required when ``save_to_csv`` is True.
        filters: Mixed-type include/exclude spec.
        row_limit: Consider only the first N rows (-1 for all).
        group_label: Header for the key column.
    """
    if save_to_csv and not pivot_file_path:
        raise PivotConfigError("save_to_csv requires pivot_file_path")

    start = time.perf_counter()
    fields = normalize_group_fields(index_fields)
    value_fields = list(value_fields)

    spec = FilterSpec.from_typed(text_include, text_exclude, numeric_include, numeric_exclude)
    if filters is not None:
        spec = filters.merge(spec)

    outcome = fold_rows(_records(rows), value_fields, fields, row_limit, spec)
    result = PivotResult(
        value_fields=tuple(value_fields),
        group_fields=tuple(fields),
        group_label=group_label or default_group_label(fields),
        groups=tuple(outcome.table.finalize()),
        rows_scanned=outcome.rows_scanned,
        rows_aggregated=outcome.rows_aggregated,
    )

    if save_to_csv:
        from ..repositories.pivot_sink import CsvPivotSink, write_pivot

        with CsvPivotSink(pivot_file_path) as sink:
            write_pivot(result, sink)
        logger.info("Wrote %d group(s) to %s", len(result), pivot_file_path)

    elapsed = time.perf_counter() - start
    logger.info("Finished processing the %d-row dataset in %.3f seconds", outcome.rows_scanned, elapsed)
    return dataclasses.replace(result, elapsed_seconds=elapsed)


def _records(rows: Iterable[Any]):
    for row in rows:
        yield as_record(row)
