"""
Conversion between FEN, PGN, SAN and UCI notations using python-chess.

Turns an analyze request into the literal UCI `position ...` command and the
resolved board, and renders engine moves back into SAN. Boards are treated as
immutable values: every move application works on a copy.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import chess
import chess.pgn

from common import InvalidMoveError, InvalidPositionError, InvalidRequestError

logger = logging.getLogger(__name__)

# Game termination markers that never carry a move
RESULT_TOKENS = frozenset({"1-0", "0-1", "1/2-1/2", "*"})

# Tag pairs, comments, variations and numeric annotation glyphs
PGN_STRIP_PATTERNS = (
    re.compile(r"\[[^\]]*\]"),
    re.compile(r"\{[^}]*\}"),
    re.compile(r"\([^)]*\)"),
    re.compile(r"\$\d+"),
)


class Notation(str, Enum):
    """Input notation carried by an analyze request."""

    FEN = "fen"
    PGN = "pgn"
    UCI = "uci"
    SAN = "san"


# Lenient precedence: PGN wins, then moves (on top of an optional FEN), then FEN
NOTATION_PRECEDENCE = (Notation.PGN, Notation.SAN, Notation.UCI, Notation.FEN)


@dataclass(frozen=True)
class AnalyzeRequest:
    """A position to analyze, given in one of four notations."""

    fen: str = ""
    pgn: str = ""
    uci: str = ""
    san: str = ""

    def value(self, notation: Notation) -> str:
        """Get the trimmed text supplied for a notation."""
        return getattr(self, notation.value).strip()

    def provided_notations(self) -> list[Notation]:
        """List every notation with a non-empty field."""
        return [n for n in NOTATION_PRECEDENCE if self.value(n)]

    def primary_notation(self) -> Notation | None:
        """Get the authoritative notation, or None for an empty request."""
        provided = self.provided_notations()
        return provided[0] if provided else None

    def is_empty(self) -> bool:
        return self.primary_notation() is None

    def require_single_notation(self) -> Notation:
        """Enforce that exactly one notation field is populated.

        Raises:
            InvalidRequestError: If zero or several fields are populated.
        """
        provided = self.provided_notations()
        if len(provided) != 1:
            raise InvalidRequestError("provide exactly one of: fen, pgn, uci, san")
        return provided[0]


@dataclass(frozen=True)
class PositionCommand:
    """Engine position command plus the board it describes."""

    command: str
    board: chess.Board | None
    notation: Notation


def parse_fen(fen: str) -> chess.Board:
    """Build a board from a FEN string.

    Raises:
        InvalidPositionError: If the FEN is malformed.
    """
    try:
        return chess.Board(fen)
    except ValueError as e:
        raise InvalidPositionError(f"Invalid FEN: {fen}") from e


def render_fen(board: chess.Board) -> str:
    """Render a board as FEN, keeping the en-passant square after double pushes."""
    return board.fen(en_passant="fen")


def apply_move(board: chess.Board, move: chess.Move) -> chess.Board:
    """Return a new board with the move played; the input board is untouched."""
    after = board.copy(stack=False)
    after.push(move)
    return after


def sanitize_pgn(pgn: str) -> str:
    """Strip tags, comments, variations and NAGs from PGN text."""
    text = pgn
    for pattern in PGN_STRIP_PATTERNS:
        text = pattern.sub(" ", text)
    text = text.replace("\r", "\n")
    return text.strip()


def clean_san_token(token: str) -> str:
    """Reduce a SAN list token to a bare move, or "" if it holds none.

    Examples:
        "1." -> "", "1.e4" -> "e4", "12...Nf6" -> "Nf6", "1-0" -> "", "Nf3" -> "Nf3"
    """
    if not token or token in RESULT_TOKENS:
        return ""
    if token.endswith("."):
        return ""
    if "." in token:
        return token.rsplit(".", 1)[-1]
    return token


def tokenize_san_moves(san_moves: str) -> list[str]:
    """Split a SAN move list into bare move tokens."""
    tokens = (clean_san_token(t) for t in san_moves.split())
    return [t for t in tokens if t]


def san_to_uci_moves(san_moves: str, board: chess.Board) -> tuple[list[str], chess.Board]:
    """Decode SAN moves against a board and re-encode them as UCI.

    Args:
        san_moves: Whitespace separated SAN moves, move numbers allowed.
        board: Position the first move is played from.

    Returns:
        Tuple of (UCI moves, board after the last move).

    Raises:
        InvalidMoveError: If a token cannot be decoded or no move was found.
    """
    uci_moves: list[str] = []
    current = board
    for token in tokenize_san_moves(san_moves):
        try:
            move = current.parse_san(token)
        except ValueError as e:
            raise InvalidMoveError(f"Invalid SAN move {token!r}: {e}") from e
        if not move:
            raise InvalidMoveError(f"Null move {token!r} not allowed")
        uci_moves.append(move.uci())
        current = apply_move(current, move)

    if not uci_moves:
        raise InvalidMoveError("no SAN moves parsed")
    return uci_moves, current


def apply_uci_moves(board: chess.Board, uci_moves: str) -> chess.Board:
    """Replay UCI moves from a board.

    Raises:
        InvalidMoveError: If a token is malformed, a null move, or illegal.
    """
    current = board
    for token in uci_moves.split():
        try:
            move = current.parse_uci(token)
        except ValueError as e:
            raise InvalidMoveError(f"Invalid UCI move {token!r}: {e}") from e
        if not move:
            raise InvalidMoveError(f"Null move {token!r} not allowed")
        current = apply_move(current, move)
    return current


def uci_to_san(uci_move: str, board: chess.Board | None) -> str:
    """Render a UCI move in SAN; returns "" when it cannot be rendered."""
    if not uci_move or board is None:
        return ""
    try:
        move = board.parse_uci(uci_move)
    except ValueError:
        logger.debug(f"Cannot render {uci_move!r} as SAN in {render_fen(board)}")
        return ""
    if not move:
        return ""
    return board.san(move)


def read_pgn(pgn: str) -> chess.pgn.Game:
    """Parse PGN text, retrying with the raw text if the sanitized text fails.

    Raises:
        InvalidPositionError: If neither text parses cleanly.
    """
    error = "no game found"
    for text in (sanitize_pgn(pgn), pgn):
        game = chess.pgn.read_game(io.StringIO(text))
        if game is None:
            continue
        if not game.errors:
            return game
        error = str(game.errors[0])
        logger.debug(f"PGN parse attempt failed: {error}")
    raise InvalidPositionError(f"Invalid PGN: {error}")


def _base_position(request: AnalyzeRequest) -> tuple[str, chess.Board]:
    fen = request.value(Notation.FEN)
    if fen:
        return f"position fen {fen}", parse_fen(fen)
    return "position startpos", chess.Board()


def _resolve_pgn(request: AnalyzeRequest) -> PositionCommand:
    game = read_pgn(request.value(Notation.PGN))
    try:
        board = game.end().board()
    except ValueError as e:
        raise InvalidPositionError(f"Invalid PGN: {e}") from e
    return PositionCommand(f"position fen {render_fen(board)}", board, Notation.PGN)


def _resolve_san(request: AnalyzeRequest) -> PositionCommand:
    base_cmd, board = _base_position(request)
    uci_moves, board = san_to_uci_moves(request.value(Notation.SAN), board)
    return PositionCommand(f"{base_cmd} moves {' '.join(uci_moves)}", board, Notation.SAN)


def _resolve_uci(request: AnalyzeRequest) -> PositionCommand:
    base_cmd, board = _base_position(request)
    uci_moves = request.value(Notation.UCI)
    board = apply_uci_moves(board, uci_moves)
    return PositionCommand(f"{base_cmd} moves {uci_moves}", board, Notation.UCI)


def _resolve_fen(request: AnalyzeRequest) -> PositionCommand:
    base_cmd, board = _base_position(request)
    return PositionCommand(base_cmd, board, Notation.FEN)


_RESOLVERS: dict[Notation, Callable[[AnalyzeRequest], PositionCommand]] = {
    Notation.PGN: _resolve_pgn,
    Notation.SAN: _resolve_san,
    Notation.UCI: _resolve_uci,
    Notation.FEN: _resolve_fen,
}


def build_position_command(request: AnalyzeRequest) -> PositionCommand:
    """Resolve a request into an engine position command.

    Args:
        request: The analyze request.

    Returns:
        PositionCommand with the `position ...` line and the resolved board.

    Raises:
        InvalidRequestError: If no notation field is populated.
        InvalidPositionError: If the FEN or PGN is invalid.
        InvalidMoveError: If a move token is invalid.
    """
    notation = request.primary_notation()
    if notation is None:
        raise InvalidRequestError("fen, pgn, uci or san required")
    return _RESOLVERS[notation](request)
