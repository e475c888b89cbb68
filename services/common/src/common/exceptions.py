"""
Unified exception hierarchy for the Stockfish SSH analysis service.

Every layer (notation conversion, SSH transport, UCI session, orchestration)
raises from this hierarchy so the HTTP boundary can map errors in one place.
"""

from __future__ import annotations


class AnalysisServiceError(Exception):
    """Base exception for all analysis service errors."""


# =============================================================================
# Request Exceptions
# =============================================================================


class InvalidRequestError(AnalysisServiceError):
    """Request carries no usable notation field."""


class InvalidPositionError(InvalidRequestError):
    """Malformed FEN or unparseable PGN."""


class InvalidMoveError(InvalidRequestError):
    """Illegal or unparseable SAN/UCI move token."""


# =============================================================================
# Transport Exceptions
# =============================================================================


class TransportError(AnalysisServiceError):
    """Base exception for remote channel errors."""


class SSHConnectionError(TransportError):
    """SSH dial, authentication or channel setup failed."""


# =============================================================================
# Engine Exceptions
# =============================================================================


class EngineError(AnalysisServiceError):
    """Base exception for engine-related errors."""


class EngineStartupError(EngineError):
    """Remote engine process failed to launch."""


class EngineTimeoutError(EngineError):
    """No best move was produced before the polling cap or deadline."""


class EngineProcessError(EngineError):
    """Engine process exited with an error and no best move."""
