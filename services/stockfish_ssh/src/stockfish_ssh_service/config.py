"""
Configuration for the Stockfish SSH analysis service.

All configuration can be set via environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_seconds(name: str, default: float) -> float:
    """Read a duration in seconds, accepting a trailing "s" (e.g. "5s")."""
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return default
    try:
        return float(value.removesuffix("s"))
    except ValueError:
        return default


@dataclass
class SSHConfig:
    """Connection settings for the remote host running the engine."""

    host: str = field(default_factory=lambda: os.environ.get("SSH_HOST", ""))
    port: int = field(default_factory=lambda: int(os.environ.get("SSH_PORT", "22")))
    user: str = field(default_factory=lambda: os.environ.get("SSH_USER", ""))
    password: str = field(default_factory=lambda: os.environ.get("SSH_PASSWORD", ""))
    # Raw key material or a path to a key file
    private_key: str = field(default_factory=lambda: os.environ.get("SSH_PRIVATE_KEY", ""))
    timeout: float = field(default_factory=lambda: _env_seconds("SSH_TIMEOUT", 5.0))


@dataclass
class EngineConfig:
    """Configuration for a single remote engine invocation."""

    stockfish_path: str = field(
        default_factory=lambda: os.environ.get("STOCKFISH_PATH", "stockfish")
    )
    analysis_depth: int = field(
        default_factory=lambda: int(os.environ.get("ANALYSIS_DEPTH", "12"))
    )
    include_raw: bool = field(default_factory=lambda: _env_flag("INCLUDE_RAW", False))
    poll_interval: float = 0.1  # seconds between bestmove checks
    max_polls: int = 300  # ~30s at the default interval
    drain_timeout: float = 2.0  # seconds to wait for trailing output after exit
    request_timeout: float = field(
        default_factory=lambda: _env_seconds("REQUEST_TIMEOUT", 60.0)
    )


@dataclass
class ServerConfig:
    """Configuration for the HTTP server."""

    host: str = field(default_factory=lambda: os.environ.get("SERVER_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.environ.get("SERVER_PORT", "8080")))
    # Reject requests that populate more than one notation field
    strict_input: bool = field(default_factory=lambda: _env_flag("STRICT_INPUT", True))
