"""API middleware -- CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of :class:`~src.utils.errors.KMSError` subclasses into JSON
``ErrorResponse`` bodies with a status code chosen from the error's class.

Starlette middleware is a stack (last added, first executed).  main.py adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` so the
logging middleware sees the final status code.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    ChunkingParseError,
    ConfigurationError,
    ForbiddenError,
    IngestionError,
    InputValidationError,
    KMSError,
    NotFoundError,
    RateLimitError,
    StateConflictError,
    UpstreamPermanentError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)
from src.utils.logging import bind_context, clear_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def status_code_for(exc: KMSError) -> int:
    """Map an application error to its HTTP status code."""
    if isinstance(exc, InputValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, StateConflictError):
        return 409
    if isinstance(exc, ForbiddenError):
        return 403
    if isinstance(exc, RateLimitError):
        return 429
    if isinstance(exc, UpstreamTimeoutError):
        return 504
    if isinstance(exc, UpstreamTransientError):
        return 502
    if isinstance(exc, ChunkingParseError):
        return 422
    if isinstance(exc, UpstreamPermanentError):
        return 502
    if isinstance(exc, IngestionError):
        return 502 if exc.retryable else 400
    if isinstance(exc, ConfigurationError):
        return 500
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    A request id (the ``X-Request-ID`` header, or a fresh one) is bound to
    the structlog context for the lifetime of the request.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )
            clear_context()


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``KMSError`` subclasses and return structured JSON errors.

    The body carries the error class, its ``kind``, the message, the
    ``retryable`` flag and the error context (model, attempts, last
    upstream error).  Stack traces are logged server-side only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except KMSError as exc:
            status_code = status_code_for(exc)
            log = _logger.error if status_code >= 500 else _logger.warning
            log(
                "application_error",
                error_type=type(exc).__name__,
                kind=exc.kind,
                message=exc.message,
                provider=exc.provider_name,
                retryable=exc.retryable,
                status=status_code,
                path=str(request.url.path),
                exc_info=status_code >= 500,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                kind=exc.kind,
                detail=str(exc),
                retryable=exc.retryable,
                context=_json_safe(exc.context),
            )
            return JSONResponse(status_code=status_code, content=body.model_dump())


def _json_safe(context: dict) -> dict:
    return {
        key: value if isinstance(value, (str, int, float, bool, list, dict)) or value is None else str(value)
        for key, value in context.items()
    }
