"""
FastAPI application for pivot_tables.

Routes delegate aggregation to the service layer.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .aggregation import (
    InvariantViolationError,
    MissingFieldError,
    PivotConfigError,
    PivotError,
    PivotRequest,
    PivotResult,
    SinkUnavailableError,
    SourceUnavailableError,
    TypeMismatchError,
)
from .config import get_settings
from .domain import ErrorCode
from .services import PivotService

logger = logging.getLogger(__name__)

app = FastAPI(title="Pivot Tables", version="1.0.0", docs_url="/docs", redoc_url="/redoc", openapi_url="/openapi.json")


# ============================================================================
# Pydantic Models
# ============================================================================

class AccumulatorModel(BaseModel):
    sum: float | None
    count: int
    mean: float | None


class PivotGroupModel(BaseModel):
    key: str
    parts: list[str]
    accumulators: list[AccumulatorModel]


class TimingInfo(BaseModel):
    aggregation_ms: int = 0
    total_ms: int = 0


class PivotResponse(BaseModel):
    group_label: str
    group_fields: list[str]
    value_fields: list[str]
    header: list[str]
    groups: list[PivotGroupModel]
    rows_scanned: int
    rows_aggregated: int
    output_path: str | None = None
    timing: TimingInfo


class HealthResponse(BaseModel):
    status: str
    data_dir_exists: bool
    output_dir_exists: bool


class SettingsResponse(BaseModel):
    data_dir: str
    output_dir: str
    default_row_limit: int
    csv_encoding: str
    csv_delimiter: str
    default_mode: str


# ============================================================================
# Helpers
# ============================================================================

def _pivot_service() -> PivotService:
    return PivotService(get_settings(), restrict_paths=True)


def _json_float(x: float | None) -> float | None:
    return x if x is not None and math.isfinite(x) else None


def _to_response(result: PivotResult, output_path: str | None, total_ms: int) -> PivotResponse:
    groups = [
        PivotGroupModel(
            key=g.key.text,
            parts=list(g.key.parts),
            accumulators=[
                AccumulatorModel(sum=_json_float(a.sum), count=a.count, mean=_json_float(a.mean))
                for a in g.accumulators
            ],
        )
        for g in result.groups
    ]
    return PivotResponse(
        group_label=result.group_label,
        group_fields=list(result.group_fields),
        value_fields=list(result.value_fields),
        header=result.header(),
        groups=groups,
        rows_scanned=result.rows_scanned,
        rows_aggregated=result.rows_aggregated,
        output_path=output_path,
        timing=TimingInfo(aggregation_ms=int(result.elapsed_seconds * 1000), total_ms=total_ms),
    )


def _error_status(exc: PivotError) -> tuple[int, str]:
    if isinstance(exc, SourceUnavailableError):
        return 404, ErrorCode.SOURCE_NOT_FOUND
    if isinstance(exc, MissingFieldError):
        return 400, ErrorCode.MISSING_FIELD
    if isinstance(exc, TypeMismatchError):
        return 400, ErrorCode.TYPE_MISMATCH
    if isinstance(exc, PivotConfigError):
        return 400, ErrorCode.INVALID_REQUEST
    if isinstance(exc, SinkUnavailableError):
        return 500, ErrorCode.SINK_ERROR
    if isinstance(exc, InvariantViolationError):
        logger.error("Pivot invariant violated: %s", exc)
    return 500, ErrorCode.INTERNAL_ERROR


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid pivot request: " + "; ".join(parts)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": {"code": ErrorCode.INVALID_REQUEST, "message": _describe_validation_errors(exc)}},
    )


# ============================================================================
# Routes
# ============================================================================

@app.post("/api/pivots", response_model=PivotResponse)
async def create_pivot(request: PivotRequest) -> PivotResponse:
    start = time.perf_counter()
    service = _pivot_service()
    try:
        result = await asyncio.to_thread(service.execute, request)
    except PivotError as exc:
        status, code = _error_status(exc)
        raise HTTPException(status, {"code": code, "message": str(exc)})
    output_path = str(service.resolve_output(request.output_path)) if request.output_path else None
    return _to_response(result, output_path, int((time.perf_counter() - start) * 1000))


@app.get("/api/settings", response_model=SettingsResponse)
async def get_api_settings() -> SettingsResponse:
    s = get_settings()
    return SettingsResponse(
        data_dir=s.data_dir,
        output_dir=s.output_dir,
        default_row_limit=s.default_row_limit,
        csv_encoding=s.csv_encoding,
        csv_delimiter=s.csv_delimiter,
        default_mode=s.default_mode,
    )


@app.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    s = get_settings()
    return HealthResponse(
        status="ok",
        data_dir_exists=Path(s.data_dir).is_dir(),
        output_dir_exists=Path(s.output_dir).is_dir(),
    )
