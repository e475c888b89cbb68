"""
Evaluation normalization.

UCI engines report scores from the side to move. These helpers flip them to
White's perspective and map them onto a 0-100 evaluation bar.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import chess

from .output_parser import EngineInfo

# Centipawn scale of the bar: +-400cp lands about 38 points from the centre
EVAL_BAR_SCALE_CP = 400.0


@dataclass(frozen=True)
class Evaluation:
    """White-relative evaluation and its bar percentage."""

    cp: int | None = None
    mate: int | None = None
    bar: int | None = None


def is_white_to_move(board: chess.Board | None) -> bool:
    """Side to move of the resolved board; White when nothing was resolved."""
    return board is None or board.turn == chess.WHITE


def compute_eval_bar(cp: int | None, mate: int | None) -> int | None:
    """
    Map a White-relative score onto a 0-100 bar.

    Mate scores pin the bar to 100 (White mates) or 0 (Black mates); mate 0
    carries no winner and sits at 50. Centipawns follow 50 + 50 * tanh(cp / 400).

    Returns:
        Bar value, or None if neither score is present.
    """
    if mate is not None:
        if mate > 0:
            return 100
        if mate < 0:
            return 0
        return 50
    if cp is None:
        return None

    value = 50 + 50 * math.tanh(cp / EVAL_BAR_SCALE_CP)
    # Round half away from zero; value is never negative
    bar = int(math.floor(value + 0.5))
    return max(0, min(100, bar))


def normalize_evaluation(info: EngineInfo, board: chess.Board | None) -> Evaluation:
    """Convert side-to-move scores to White's perspective and compute the bar."""
    sign = 1 if is_white_to_move(board) else -1

    cp = info.score_cp * sign if info.score_cp is not None else None
    mate = info.score_mate * sign if info.score_mate is not None else None

    return Evaluation(cp=cp, mate=mate, bar=compute_eval_bar(cp, mate))
