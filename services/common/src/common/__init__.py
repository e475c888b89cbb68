"""Shared exceptions and HTTP error utilities for the analysis service."""

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
from .http_errors import map_exception_to_http_status, register_exception_handlers

__all__ = [
    # Exceptions
    "AnalysisServiceError",
    "EngineError",
    "EngineProcessError",
    "EngineStartupError",
    "EngineTimeoutError",
    "InvalidMoveError",
    "InvalidPositionError",
    "InvalidRequestError",
    "SSHConnectionError",
    "TransportError",
    # HTTP utilities
    "map_exception_to_http_status",
    "register_exception_handlers",
]
