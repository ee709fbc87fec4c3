"""
Record sources for pivot aggregation.

``CsvRecordSource`` streams a delimited file one line at a time for scan
pivots. ``load_records`` reads a whole file through pandas for in-memory
pivots, tagging numeric columns as numbers and everything else as text.
"""
from __future__ import annotations

import csv
import datetime as dt
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Iterator

import pandas as pd

from ..aggregation.errors import SourceUnavailableError
from ..aggregation.records import CsvRecord, TypedRecord
from ..aggregation.values import FieldValue, NumberValue, TextValue

logger = logging.getLogger(__name__)

_READ_BUFFER = 1024 * 1024


class CsvRecordSource:
    """Lazy, forward-only view of a delimited file.

    Nothing is read until iteration starts. Each ``iter()`` opens the file
    again, so every aggregation call makes its own single pass.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        delimiter: str = ",",
        encoding: str = "utf-8",
    ) -> None:
        self.path = Path(path)
        self.delimiter = delimiter
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"CsvRecordSource({str(self.path)!r})"

    def _open(self):
        try:
            return open(self.path, newline="", encoding=self.encoding, buffering=_READ_BUFFER)
        except OSError as exc:
            raise SourceUnavailableError(f"Cannot open record source {self.path}: {exc}") from exc

    def header(self) -> list[str]:
        """Field names from the first line; empty for an empty file."""
        with self._open() as fh:
            try:
                return next(csv.reader(fh, delimiter=self.delimiter))
            except StopIteration:
                return []
            except (csv.Error, UnicodeDecodeError) as exc:
                raise SourceUnavailableError(f"Cannot read header of {self.path}: {exc}") from exc

    def __iter__(self) -> Iterator[CsvRecord]:
        return self._iter_records()

    def _iter_records(self) -> Iterator[CsvRecord]:
        with self._open() as fh:
            reader = csv.reader(fh, delimiter=self.delimiter)
            try:
                headers = next(reader, None)
                if headers is None:
                    return
                index = {name: pos for pos, name in enumerate(headers)}
                width = len(headers)
                ragged = 0
                for cells in reader:
                    if not cells:
                        continue
                    if len(cells) < width:
                        ragged += 1
                    yield CsvRecord(index, cells, reader.line_num)
            except (csv.Error, UnicodeDecodeError, OSError) as exc:
                raise SourceUnavailableError(f"Cannot read record source {self.path}: {exc}") from exc
            if ragged:
                logger.warning("%d short row(s) in %s padded with empty cells", ragged, self.path)


# ============================================================================
# In-memory loading (pandas)
# ============================================================================

def _normalize_cell_value(x: Any) -> str:
    """Render a non-numeric cell as text.

    Midnight datetimes become 'YYYY-MM-DD' so the text sorts and compares like
    the source file's dates; NaN becomes the empty string.
    """
    if x is None:
        return ""
    if isinstance(x, float) and x != x:
        return ""
    if isinstance(x, (dt.datetime, pd.Timestamp)):
        if x.hour == 0 and x.minute == 0 and x.second == 0 and x.microsecond == 0:
            return x.strftime("%Y-%m-%d")
        return x.isoformat(sep=" ")
    if isinstance(x, dt.date):
        return x.strftime("%Y-%m-%d")
    return str(x)


def _numeric_columns(df: pd.DataFrame, text_fields: Iterable[str]) -> set[str]:
    forced_text = set(text_fields)
    return {
        str(col)
        for col in df.columns
        if str(col) not in forced_text
        and pd.api.types.is_numeric_dtype(df[col])
        and not pd.api.types.is_bool_dtype(df[col])
    }


def records_from_dataframe(df: pd.DataFrame, *, text_fields: Iterable[str] = ()) -> list[TypedRecord]:
    """Tag every cell of ``df``: numeric dtypes as NumberValue, the rest as TextValue.

    A blank cell in a numeric column is tagged as empty text, the same value a
    streamed CsvRecord holds, so reading it as a number raises
    TypeMismatchError in both modes.
    """
    columns = [str(c) for c in df.columns]
    numeric = _numeric_columns(df, text_fields)
    records: list[TypedRecord] = []
    for row in df.itertuples(index=False, name=None):
        values: dict[str, FieldValue] = {}
        for col, cell in zip(columns, row):
            if col in numeric:
                values[col] = TextValue("") if pd.isna(cell) else NumberValue(float(cell))
            else:
                values[col] = TextValue(_normalize_cell_value(cell))
        records.append(TypedRecord(values))
    return records


def load_records(
    path: str | os.PathLike[str],
    *,
    text_fields: Iterable[str] = (),
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> list[TypedRecord]:
    """Read a delimited file fully into memory as typed records.

    Columns named in ``text_fields`` stay text even if every cell looks
    numeric (airport codes, ZIP codes, years used as group keys).
    """
    text_fields = list(text_fields)
    try:
        df = pd.read_csv(
            path,
            sep=delimiter,
            encoding=encoding,
            dtype={name: str for name in text_fields},
            keep_default_na=False,
            na_values=[""],
        )
    except pd.errors.EmptyDataError:
        return []
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise SourceUnavailableError(f"Cannot load record source {path}: {exc}") from exc

    records = records_from_dataframe(df, text_fields=text_fields)
    logger.info("Loaded %d row(s) x %d column(s) from %s", len(records), len(df.columns), path)
    return records
