"""
Analysis orchestration.

Runs one request/response cycle: resolve the position, search it on the
remote engine, parse the output and assemble a White-relative result.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

import paramiko

from common import AnalysisServiceError, InvalidRequestError, SSHConnectionError

from .config import EngineConfig, SSHConfig
from .evaluation import normalize_evaluation
from .notation import AnalyzeRequest, build_position_command, render_fen, uci_to_san
from .output_parser import format_engine_info, parse_best_move, parse_engine_info
from .session import UciSession, open_ssh_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SSHConfig], paramiko.SSHClient]


@dataclass(frozen=True)
class AnalyzeResult:
    """Result of a single position analysis, scores from White's perspective."""

    best_move_uci: str = ""
    best_move_san: str = ""
    evaluation_cp: int | None = None
    evaluation_mate: int | None = None
    eval_bar: int | None = None
    depth: int = 0
    nodes: int = 0
    nps: int = 0
    pv: list[str] = field(default_factory=list)
    position_fen: str = ""
    raw: str | None = None  # Engine transcript, only when enabled

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready dict, omitting the transcript when absent."""
        data = asdict(self)
        if self.raw is None:
            del data["raw"]
        return data


class AnalysisService:
    """
    Entry point for position analysis on a remote engine.

    Stateless between calls: every analysis dials its own SSH connection and
    launches its own engine process, so concurrent calls share nothing.

    Usage:
        service = AnalysisService(SSHConfig(), EngineConfig())
        result = service.analyze(AnalyzeRequest(san="1. e4 e5 2. Nf3"))
        print(result.best_move_san, result.eval_bar)
    """

    def __init__(
        self,
        ssh_config: SSHConfig | None = None,
        engine_config: EngineConfig | None = None,
        client_factory: ClientFactory = open_ssh_client,
    ) -> None:
        """Initialize the service.

        Args:
            ssh_config: Remote host settings.
            engine_config: Engine and timing settings.
            client_factory: Callable that dials an SSH client.
        """
        self._ssh_config = ssh_config or SSHConfig()
        self._engine_config = engine_config or EngineConfig()
        self._client_factory = client_factory

    @property
    def engine_config(self) -> EngineConfig:
        return self._engine_config

    def health(self) -> None:
        """Check that the remote host accepts an SSH connection.

        Raises:
            SSHConnectionError: If the host cannot be reached or authenticated.
        """
        with self._connect():
            logger.debug("Health check connection established")

    def analyze(
        self,
        request: AnalyzeRequest,
        cancel: threading.Event | None = None,
    ) -> AnalyzeResult:
        """Analyze a position.

        Args:
            request: Position in FEN, PGN, UCI or SAN notation.
            cancel: Optional event the caller sets to abandon the search.

        Returns:
            AnalyzeResult with best move, evaluation and search statistics.

        Raises:
            InvalidRequestError: If no notation is supplied.
            InvalidPositionError: If the FEN or PGN is invalid.
            InvalidMoveError: If a move is illegal or unparseable.
            SSHConnectionError: If the remote host is unreachable.
            EngineError: If the engine fails to start, times out or crashes.
        """
        if request.is_empty():
            raise InvalidRequestError("fen, pgn, uci or san required")

        position = build_position_command(request)
        logger.info(f"Analyzing {position.notation.value} request: {position.command}")

        cancel = cancel or threading.Event()
        deadline = threading.Timer(self._engine_config.request_timeout, cancel.set)
        deadline.daemon = True
        deadline.start()
        try:
            with self._connect() as client:
                session = UciSession(client, self._engine_config, cancel)
                transcript = session.run(position.command)
        except AnalysisServiceError:
            raise
        except (paramiko.SSHException, OSError) as e:
            raise SSHConnectionError(f"SSH transport failed during analysis: {e}") from e
        finally:
            deadline.cancel()

        output = transcript.output
        best_move = parse_best_move(output)
        info = parse_engine_info(output)
        evaluation = normalize_evaluation(info, position.board)
        logger.info(f"Best move {best_move or '-'}: {format_engine_info(info)}")

        return AnalyzeResult(
            best_move_uci=best_move,
            best_move_san=uci_to_san(best_move, position.board),
            evaluation_cp=evaluation.cp,
            evaluation_mate=evaluation.mate,
            eval_bar=evaluation.bar,
            depth=info.depth,
            nodes=info.nodes,
            nps=info.nps,
            pv=list(info.pv),
            position_fen=render_fen(position.board) if position.board is not None else "",
            raw=output if self._engine_config.include_raw else None,
        )

    def _connect(self) -> paramiko.SSHClient:
        return self._client_factory(self._ssh_config)
