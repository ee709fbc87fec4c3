"""
Pivot service: turns a PivotRequest into a finalized PivotResult.

Resolves paths, validates fields against the source header, then runs the
scan or in-memory aggregator and writes the output file when one is asked for.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..aggregation import (
    PivotConfigError,
    PivotRequest,
    PivotResult,
    in_memory_pivot,
    scan_to_pivot,
    validate_request,
    validate_result,
)
from ..config import Settings
from ..repositories import CsvPivotSink, CsvRecordSource, load_records, write_pivot

logger = logging.getLogger(__name__)


class PivotService:
    """Executes pivot requests against delimited files.

    With ``restrict_paths`` set, source paths resolve under ``data_dir`` and
    output paths under ``output_dir``; anything escaping those directories is
    rejected. Otherwise paths are used as given.
    """

    def __init__(self, settings: Settings, restrict_paths: bool = False) -> None:
        self._settings = settings
        self._restrict = restrict_paths

    @property
    def settings(self) -> Settings:
        return self._settings

    def build_request(self, payload: dict[str, Any]) -> PivotRequest:
        try:
            return PivotRequest.model_validate(payload)
        except ValidationError as exc:
            raise PivotConfigError(f"Invalid pivot request: {exc}") from exc

    def resolve_source(self, raw: str) -> Path:
        return self._resolve(raw, self._settings.data_dir)

    def resolve_output(self, raw: str) -> Path:
        return self._resolve(raw, self._settings.output_dir)

    def _resolve(self, raw: str, base_dir: str) -> Path:
        if not self._restrict:
            return Path(raw)
        base = Path(base_dir).resolve()
        candidate = (base / raw).resolve()
        if candidate != base and base not in candidate.parents:
            raise PivotConfigError(f"Path '{raw}' escapes {base_dir}")
        return candidate

    def execute(self, request: PivotRequest) -> PivotResult:
        s = self._settings
        mode = request.mode or s.default_mode
        row_limit = request.row_limit if request.row_limit is not None else s.default_row_limit

        source_path = self.resolve_source(request.source_path)
        output_path = self.resolve_output(request.output_path) if request.output_path else None

        source = CsvRecordSource(source_path, delimiter=s.csv_delimiter, encoding=s.csv_encoding)
        validate_request(request, source.header())

        if mode == "memory":
            result = self._execute_in_memory(request, source_path, output_path, row_limit)
        else:
            result = scan_to_pivot(
                source, request.value_fields, request.group_fields, row_limit,
                request.filters, group_label=request.label,
            )
            # the output file is only opened once the scan has succeeded
            if output_path is not None:
                with CsvPivotSink(output_path, delimiter=s.csv_delimiter, encoding=s.csv_encoding) as sink:
                    write_pivot(result, sink)
                logger.info("Wrote %d group(s) to %s", len(result), output_path)

        validate_result(result)
        logger.info(
            "Pivot %s over %s (%s mode): %d group(s), %d/%d row(s) aggregated",
            request.label, source_path, mode, len(result), result.rows_aggregated, result.rows_scanned,
        )
        return result

    def _execute_in_memory(
        self,
        request: PivotRequest,
        source_path: Path,
        output_path: Path | None,
        row_limit: int,
    ) -> PivotResult:
        filters = request.filters
        # group fields and text-filtered fields must load as text even when they look numeric
        text_fields = list(dict.fromkeys([
            *request.group_fields,
            *request.text_fields,
            *(name for name, p in filters.include.items() if p.kind == "text"),
            *(name for name, p in filters.exclude.items() if p.kind == "text"),
        ]))
        records = load_records(
            source_path,
            text_fields=text_fields,
            delimiter=self._settings.csv_delimiter,
            encoding=self._settings.csv_encoding,
        )
        return in_memory_pivot(
            records,
            request.group_fields,
            request.value_fields,
            save_to_csv=output_path is not None,
            pivot_file_path=output_path,
            filters=filters,
            row_limit=row_limit,
            group_label=request.label,
        )
