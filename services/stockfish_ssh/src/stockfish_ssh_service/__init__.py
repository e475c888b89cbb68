"""
Stockfish SSH Analysis Service

Drives a UCI chess engine on a remote host over SSH and exposes position
analysis over HTTP.
"""

from .config import EngineConfig, ServerConfig, SSHConfig
from .evaluation import Evaluation, compute_eval_bar, normalize_evaluation
from .notation import AnalyzeRequest, Notation, PositionCommand, build_position_command
from .output_parser import EngineInfo, parse_best_move, parse_engine_info
from .service import AnalysisService, AnalyzeResult
from .session import EngineTranscript, PollState, UciSession, open_ssh_client

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Config
    "EngineConfig",
    "ServerConfig",
    "SSHConfig",
    # Notation
    "AnalyzeRequest",
    "Notation",
    "PositionCommand",
    "build_position_command",
    # Output parsing
    "EngineInfo",
    "parse_best_move",
    "parse_engine_info",
    # Evaluation
    "Evaluation",
    "compute_eval_bar",
    "normalize_evaluation",
    # Session
    "EngineTranscript",
    "PollState",
    "UciSession",
    "open_ssh_client",
    # Service
    "AnalysisService",
    "AnalyzeResult",
]
