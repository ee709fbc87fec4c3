"""
Pivot output sinks.

A sink accepts one ordered list of text fields per output row.
"""
from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import IO, Any, Protocol, Sequence

from ..aggregation.errors import SinkUnavailableError
from ..aggregation.models import PivotResult

logger = logging.getLogger(__name__)


class PivotSink(Protocol):
    def write_row(self, fields: Sequence[str]) -> None: ...


class CsvPivotSink:
    """Writes rows to a delimited file. Use as a context manager."""

    def __init__(self, path: str | os.PathLike[str], *, delimiter: str = ",", encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self._delimiter = delimiter
        self._encoding = encoding
        self._fh: IO[str] | None = None
        self._writer: Any = None
        self.rows_written = 0

    def open(self) -> "CsvPivotSink":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "w", newline="", encoding=self._encoding)
        except OSError as exc:
            raise SinkUnavailableError(f"Cannot open pivot output {self.path}: {exc}") from exc
        self._writer = csv.writer(self._fh, delimiter=self._delimiter)
        return self

    def write_row(self, fields: Sequence[str]) -> None:
        if self._writer is None:
            raise SinkUnavailableError(f"Pivot output {self.path} is not open")
        try:
            self._writer.writerow(fields)
        except OSError as exc:
            raise SinkUnavailableError(f"Cannot write pivot output {self.path}: {exc}") from exc
        self.rows_written += 1

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.close()
        except OSError as exc:
            raise SinkUnavailableError(f"Cannot close pivot output {self.path}: {exc}") from exc
        finally:
            self._fh = None
            self._writer = None

    def __enter__(self) -> "CsvPivotSink":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def write_pivot(result: PivotResult, sink: PivotSink) -> int:
    """Emit the header row and then one row per group. Returns rows written."""
    sink.write_row(result.header())
    written = 1
    for row in result.rows():
        sink.write_row(row)
        written += 1
    return written
