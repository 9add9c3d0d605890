"""Knowledge ingestion API layer: routes, schemas and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    status_code_for,
)
from src.api.routes import router
from src.api.schemas import (
    ErrorResponse,
    HealthResponse,
    IngestRequest,
    PreviewResponse,
    PublishResponse,
    SessionResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "status_code_for",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "IngestRequest",
    "PreviewResponse",
    "PublishResponse",
    "SessionResponse",
]
