"""
Parser for UCI engine search output.

Extracts the best move and the most recent scored `info` line from the text a
UCI engine prints while searching.

Example search output:
    info depth 11 seldepth 15 multipv 1 score cp 31 nodes 28103 nps 1405150 pv e2e4 e7e5 g1f3
    info depth 12 seldepth 17 multipv 1 score cp 28 nodes 41522 nps 1383829 pv e2e4 c7c5 g1f3
    bestmove e2e4 ponder c7c5
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

BESTMOVE_MARKER = "bestmove "

# Keywords whose single integer argument maps onto an EngineInfo field
INT_FIELDS = {
    "depth": "depth",
    "nodes": "nodes",
    "nps": "nps",
}


@dataclass
class EngineInfo:
    """Search statistics from a single `info` line."""

    depth: int = 0
    nodes: int = 0
    nps: int = 0
    score_cp: int | None = None  # Centipawns from side to move
    score_mate: int | None = None  # Mate in N from side to move
    pv: list[str] = field(default_factory=list)  # Principal variation in UCI notation

    def has_evaluation(self) -> bool:
        """Check whether the line carried a score or a principal variation."""
        return bool(self.pv) or self.score_cp is not None or self.score_mate is not None


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def parse_info_line(line: str) -> EngineInfo:
    """
    Parse one `info ...` line into an EngineInfo.

    Unknown tokens and unparseable values are ignored. The `pv` keyword
    consumes the rest of the line.

    Args:
        line: A single engine output line.

    Returns:
        EngineInfo with whatever fields the line carried.
    """
    info = EngineInfo()
    tokens = line.split()

    i = 0
    while i < len(tokens):
        token = tokens[i]

        if token in INT_FIELDS and i + 1 < len(tokens):
            value = _parse_int(tokens[i + 1])
            if value is not None:
                setattr(info, INT_FIELDS[token], value)
                i += 1

        elif token == "score" and i + 2 < len(tokens):
            kind, value = tokens[i + 1], _parse_int(tokens[i + 2])
            if value is not None and kind == "cp":
                info.score_cp = value
                i += 2
            elif value is not None and kind == "mate":
                info.score_mate = value
                i += 2

        elif token == "pv":
            info.pv = tokens[i + 1 :]
            break

        i += 1

    return info


def parse_engine_info(output: str) -> EngineInfo:
    """
    Find the most recent scored `info` line in engine output.

    Scans from the end so the deepest completed iteration wins over earlier,
    shallower ones.

    Args:
        output: Accumulated engine output.

    Returns:
        EngineInfo from the last usable line, or an empty EngineInfo.
    """
    for raw_line in reversed(output.splitlines()):
        line = raw_line.strip()
        if not line.startswith("info ") or " score " not in line:
            continue

        info = parse_info_line(line)
        if info.has_evaluation():
            return info

        logger.debug(f"Skipping info line without evaluation: {line}")

    return EngineInfo()


def parse_best_move(output: str) -> str:
    """Get the move from the first `bestmove` line, or "" if there is none."""
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if line.startswith(BESTMOVE_MARKER):
            parts = line.split()
            if len(parts) >= 2:
                return parts[1]
    return ""


def has_best_move(output: str) -> bool:
    """Check whether the engine has announced its best move."""
    return BESTMOVE_MARKER in output


def format_engine_info(info: EngineInfo) -> str:
    """
    Format engine info as a one-line human-readable string.

    Useful for debugging and logging.
    """
    if info.score_mate is not None:
        score = f"mate {info.score_mate:+d}"
    elif info.score_cp is not None:
        score = f"cp {info.score_cp:+d}"
    else:
        score = "none"
    return (
        f"depth={info.depth} score={score} nodes={info.nodes} "
        f"nps={info.nps} pv={' '.join(info.pv) or '-'}"
    )
