"""
HTTP error handling utilities.

Provides an ordered exception-to-status table and FastAPI exception handlers,
so endpoints raise service exceptions instead of building error responses.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import (
    AnalysisServiceError,
    EngineError,
    EngineProcessError,
    EngineStartupError,
    EngineTimeoutError,
    InvalidMoveError,
    InvalidPositionError,
    InvalidRequestError,
    SSHConnectionError,
    TransportError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)


# Exception to HTTP status mapping
EXCEPTION_STATUS_MAP: list[tuple[type[Exception], HTTPStatus, str]] = [
    # Client errors
    (InvalidPositionError, HTTPStatus.BAD_REQUEST, "Invalid position"),
    (InvalidMoveError, HTTPStatus.BAD_REQUEST, "Invalid move"),
    (InvalidRequestError, HTTPStatus.BAD_REQUEST, "Invalid request"),
    # Transport errors
    (SSHConnectionError, HTTPStatus.BAD_GATEWAY, "SSH connection failed"),
    (TransportError, HTTPStatus.BAD_GATEWAY, "Transport error"),
    # Engine errors (order matters - base classes last)
    (EngineStartupError, HTTPStatus.BAD_GATEWAY, "Engine startup failed"),
    (EngineTimeoutError, HTTPStatus.BAD_GATEWAY, "Engine timeout"),
    (EngineProcessError, HTTPStatus.BAD_GATEWAY, "Engine process error"),
    (EngineError, HTTPStatus.BAD_GATEWAY, "Engine error"),
]


def map_exception_to_http_status(exc: Exception) -> tuple[HTTPStatus, str]:
    """Map an exception to its corresponding HTTP status and log prefix.

    Args:
        exc: The exception to map.

    Returns:
        Tuple of (status, log_prefix).
    """
    for exc_type, status, prefix in EXCEPTION_STATUS_MAP:
        if isinstance(exc, exc_type):
            return status, prefix
    return HTTPStatus.INTERNAL_SERVER_ERROR, "Internal error"


def error_response(status: HTTPStatus, message: str) -> JSONResponse:
    """Build the JSON error body used by every endpoint."""
    return JSONResponse(status_code=int(status), content={"error": message})


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate an exception into a JSON error response."""
    status, prefix = map_exception_to_http_status(exc)

    # Unexpected errors are logged with traceback and not echoed to the client
    if status == HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.exception(f"{prefix} on {request.url.path}: {exc}", exc_info=exc)
        return error_response(status, prefix)

    logger.warning(f"{prefix} on {request.url.path}: {exc}")
    return error_response(status, str(exc))


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Reject malformed request bodies with 400 instead of FastAPI's 422."""
    logger.warning(f"Invalid request body on {request.url.path}: {exc}")
    return error_response(HTTPStatus.BAD_REQUEST, "invalid json")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the service exception handlers on a FastAPI application.

    Example:
        app = FastAPI()
        register_exception_handlers(app)

        @app.post("/analyze")
        def analyze(body):
            # ... implementation that may raise AnalysisServiceError ...
            return result
    """
    app.add_exception_handler(AnalysisServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, service_error_handler)
