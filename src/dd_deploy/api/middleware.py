"""API middleware for logging, metrics, and error handling."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter, Histogram
from starlette.exceptions import HTTPException as StarletteHTTPException

from dd_deploy.core.exceptions import DDError, NotFoundError, ValidationError

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter(
    "dd_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "dd_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
)


def status_for(exc: DDError) -> int:
    """400 for bad requests, 404 for missing state, 500 for everything else."""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    return 500


def setup_error_handling(app: FastAPI) -> None:
    """Setup error handling middleware.

    Error bodies are plain text; tool failures carry the tool's raw output.
    """

    @app.exception_handler(DDError)
    async def dd_error_handler(request: Request, exc: DDError) -> PlainTextResponse:
        status_code = status_for(exc)
        log = logger.warning if status_code < 500 else logger.error
        log("Request error", error=exc.__class__.__name__, status_code=status_code, message=str(exc))
        return PlainTextResponse(str(exc), status_code=status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        return PlainTextResponse(f"Invalid request: {exc.errors()}", status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        logger.exception("Unexpected error", exc_info=exc)
        return PlainTextResponse(str(exc) or "An unexpected error occurred", status_code=500)


def setup_logging_middleware(app: FastAPI) -> None:
    """Setup request logging middleware."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )
        start_time = time.time()

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_seconds=duration,
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            duration = time.time() - start_time
            logger.exception(
                "Request failed",
                duration_seconds=duration,
                exc_info=exc,
            )
            raise


def setup_metrics_middleware(app: FastAPI) -> None:
    """Setup metrics collection middleware."""

    @app.middleware("http")
    async def collect_metrics(request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = request.url.path

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).inc()

        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


UPLOAD_PATHS = ("/image", "/deploy-file")


def setup_upload_limit_middleware(app: FastAPI, max_size_bytes: int) -> None:
    """Reject oversized uploads by Content-Length before the body is spooled.

    Chunked uploads without a Content-Length are still capped while they are
    copied out of the spooled form.
    """

    @app.middleware("http")
    async def limit_upload_size(request: Request, call_next: Callable) -> Response:
        if request.method == "POST" and request.url.path in UPLOAD_PATHS:
            length = request.headers.get("content-length")
            if length is not None:
                try:
                    declared = int(length)
                except ValueError:
                    return PlainTextResponse("Invalid Content-Length header", status_code=400)
                if declared > max_size_bytes:
                    logger.warning("Upload rejected", content_length=declared, limit=max_size_bytes)
                    return PlainTextResponse("Upload exceeds maximum allowed size", status_code=400)
        return await call_next(request)
