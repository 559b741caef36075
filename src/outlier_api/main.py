from __future__ import annotations

import re
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from outlier_api.config import AppConfig
from outlier_api.telemetry import Telemetry
from outlier_core import __version__
from outlier_core.dataset import DatasetFormat, read_values
from outlier_core.errors import DatasetTooLargeError, OutlierError
from outlier_core.models import (
    DEFAULT_PERCENTILE,
    CalculateRequest,
    CalculateResponse,
    ErrorResponse,
    HealthResponse,
    MetricsResponse,
)
from outlier_core.percentile import compute_percentile

DEFAULT_UPLOAD_FILENAME = "data.json"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$")

router = APIRouter(tags=["outlier"])


def _coerce_request_id(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if not _REQUEST_ID_RE.match(normalized):
        return None
    return normalized


def get_telemetry(request: Request) -> Telemetry:
    return request.app.state.telemetry


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid4())


def _error_response(
    request: Request,
    *,
    status_code: int,
    error: str,
    error_code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _request_id(request)
    payload = ErrorResponse(error=error, error_code=error_code, request_id=request_id)
    response_headers = {"X-Request-ID": request_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(
        status_code=status_code,
        headers=response_headers,
        content=payload.model_dump(),
    )


def _calculate(
    telemetry: Telemetry,
    values: list[float],
    percentile: float,
    *,
    source: str,
) -> CalculateResponse:
    start = time.perf_counter()
    result = compute_percentile(values, percentile)
    duration_ms = (time.perf_counter() - start) * 1000
    telemetry.metrics.record_calculation(source, len(values), duration_ms)
    telemetry.logger().info(
        "percentile_calculated",
        source=source,
        count=len(values),
        percentile=percentile,
        duration_ms=round(duration_ms, 3),
    )
    return CalculateResponse(count=len(values), percentile=percentile, result=result)


@router.post(
    "/calculate",
    response_model=CalculateResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid input"}},
)
def calculate(
    payload: CalculateRequest,
    telemetry: Telemetry = Depends(get_telemetry),
    config: AppConfig = Depends(get_config),
) -> CalculateResponse:
    """Calculate a percentile from a JSON array of values."""
    if len(payload.values) > config.limits.max_values:
        raise DatasetTooLargeError(config.limits.max_values)
    return _calculate(telemetry, payload.values, payload.percentile, source="json")


def _parse_percentile_field(raw: str | None) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_PERCENTILE
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Percentile must be a number",
        ) from exc


@router.post(
    "/calculate/file",
    response_model=CalculateResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid input or file format"}},
)
def calculate_file(
    file: UploadFile | None = File(default=None, description="JSON array or CSV with a 'value' column"),
    percentile: str | None = Form(default=None, description="Percentile to calculate, defaults to 95"),
    telemetry: Telemetry = Depends(get_telemetry),
    config: AppConfig = Depends(get_config),
) -> CalculateResponse:
    """Calculate a percentile from an uploaded JSON or CSV file."""
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided. Send a file field with your data.",
        )
    requested = _parse_percentile_field(percentile)
    filename = file.filename or DEFAULT_UPLOAD_FILENAME
    fmt = DatasetFormat.from_filename(filename)
    values = read_values(file.file, fmt, max_values=config.limits.max_values)
    return _calculate(telemetry, values, requested, source="file")


@router.get("/health", response_model=HealthResponse)
def health(telemetry: Telemetry = Depends(get_telemetry)) -> HealthResponse:
    return HealthResponse(status="healthy", service=telemetry.service_name, version=__version__)


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(telemetry: Telemetry = Depends(get_telemetry)) -> MetricsResponse:
    return MetricsResponse(**telemetry.metrics.snapshot())


@router.get("/metrics/prometheus")
def get_metrics_prometheus(telemetry: Telemetry = Depends(get_telemetry)) -> PlainTextResponse:
    return PlainTextResponse(content=telemetry.metrics.prometheus_text())


async def request_context_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    request_id = _coerce_request_id(request.headers.get("X-Request-ID")) or str(uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    telemetry = get_telemetry(request)
    telemetry.metrics.record_http_status(response.status_code)
    telemetry.logger().info(
        "http_request",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )
    return response


async def outlier_error_handler(request: Request, exc: OutlierError):  # type: ignore[no-untyped-def]
    get_telemetry(request).metrics.record_error(exc.code)
    get_telemetry(request).logger().info(
        "request_rejected",
        request_id=_request_id(request),
        path=request.url.path,
        error_code=exc.code,
        error=exc.message,
    )
    return _error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        error=exc.message,
        error_code=exc.code,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[no-untyped-def]
    error_code = f"HTTP_{exc.status_code}"
    get_telemetry(request).metrics.record_error(error_code)
    return _error_response(
        request,
        status_code=exc.status_code,
        error=str(exc.detail),
        error_code=error_code,
        headers=exc.headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[no-untyped-def]
    errors = exc.errors()
    get_telemetry(request).metrics.record_error("INVALID_REQUEST")
    message = f"Invalid request payload ({len(errors)} validation error(s))"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{message}: {location}: {first.get('msg', '')}"
    return _error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        error=message,
        error_code="INVALID_REQUEST",
    )


async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[no-untyped-def]
    request_id = _request_id(request)
    get_telemetry(request).logger().exception(
        "unhandled_exception",
        request_id=request_id,
        path=request.url.path,
        error=str(exc),
    )
    return _error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="Internal server error",
        error_code="HTTP_500",
    )


def create_app(config: AppConfig | None = None, telemetry: Telemetry | None = None) -> FastAPI:
    """Build the HTTP API around an explicitly provided config and telemetry handle.

    When no telemetry handle is given the app creates one and owns its
    lifecycle; a handle passed in stays owned by the caller.
    """
    resolved_config = config or AppConfig()
    owns_telemetry = telemetry is None
    resolved_telemetry = telemetry or Telemetry(logging_config=resolved_config.logging)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if owns_telemetry:
            resolved_telemetry.start()
        resolved_telemetry.logger().info(
            "api_started",
            version=__version__,
            max_values=resolved_config.limits.max_values,
        )
        try:
            yield
        finally:
            resolved_telemetry.logger().info("api_stopped")
            if owns_telemetry:
                resolved_telemetry.shutdown()

    app = FastAPI(
        title="Outlier API",
        version=__version__,
        description="Calculate percentiles from numerical datasets via REST API",
        docs_url="/docs",
        openapi_url="/api-docs/openapi.json",
        license_info={"name": "MIT", "url": "https://opensource.org/licenses/MIT"},
        lifespan=lifespan,
    )
    app.state.config = resolved_config
    app.state.telemetry = resolved_telemetry

    app.include_router(router)
    app.middleware("http")(request_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(OutlierError, outlier_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app

