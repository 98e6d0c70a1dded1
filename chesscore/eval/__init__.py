"""Material evaluation and related display helpers.

Pure, deterministic, and side-effect free.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Final

from chesscore.engine.bitboard import pop_count
from chesscore.engine.board import BLACK, PIECE_INDEX, PIECE_KINDS, WHITE, Board


# Material values in centipawns
P_VAL: Final = 100
N_VAL: Final = 320
B_VAL: Final = 330
R_VAL: Final = 500
Q_VAL: Final = 900
K_VAL: Final = 20000

PIECE_VALUES: Final = {"p": P_VAL, "n": N_VAL, "b": B_VAL, "r": R_VAL, "q": Q_VAL, "k": K_VAL}


def evaluate(board: Board) -> int:
    """Static material score in centipawns, positive when White is ahead.

    Kings are counted on both sides and cancel out in any legal position.
    """
    score = 0
    for kind in PIECE_KINDS:
        value = PIECE_VALUES[kind]
        score += value * pop_count(board.bb[PIECE_INDEX[(WHITE, kind)]])
        score -= value * pop_count(board.bb[PIECE_INDEX[(BLACK, kind)]])
    return score


def material_summary(board: Board) -> Dict[str, Any]:
    """Per-side piece counts and material totals in pawns (kings excluded).

    Returns:
        Dict[str, Any]: ``{"white": {"counts": {...}, "total": float},
        "black": {...}, "balance": float}``; balance is White minus Black.
    """
    summary: Dict[str, Any] = {}
    totals: Dict[str, int] = {}
    for color, name in ((WHITE, "white"), (BLACK, "black")):
        counts = {kind: pop_count(board.bb[PIECE_INDEX[(color, kind)]]) for kind in PIECE_KINDS}
        total_cp = sum(PIECE_VALUES[kind] * n for kind, n in counts.items() if kind != "k")
        totals[color] = total_cp
        summary[name] = {"counts": counts, "total": total_cp / 100}
    summary["balance"] = (totals[WHITE] - totals[BLACK]) / 100
    return summary


def format_evaluation(score: float) -> str:
    """Render a centipawn score for display: ``+0.35``, ``-1.20``, ``+12.5``, ``+M``."""
    if math.isinf(score):
        return "+M" if score > 0 else "-M"
    pawns = score / 100
    precision = 1 if abs(pawns) >= 10 else 2
    value = f"{pawns:.{precision}f}"
    return f"+{value}" if pawns >= 0 else value


def evaluation_ratio(score: float, clamp_pawns: float = 5.0) -> float:
    """Map a score onto 0..1 for an evaluation bar (0.5 is level)."""
    if math.isinf(score):
        return 1.0 if score > 0 else 0.0
    pawns = max(-clamp_pawns, min(clamp_pawns, score / 100))
    return (pawns + clamp_pawns) / (clamp_pawns * 2)
