from __future__ import annotations

import math

import pytest

from chesscore.engine.board import Board
from chesscore.eval import evaluate, evaluation_ratio, format_evaluation, material_summary


def test_startpos_is_level() -> None:
    b = Board.startpos()
    assert evaluate(b) == 0
    summary = material_summary(b)
    assert summary["white"]["total"] == 40.0
    assert summary["black"]["total"] == 40.0
    assert summary["balance"] == 0.0
    assert summary["white"]["counts"] == {"p": 8, "n": 2, "b": 2, "r": 2, "q": 1, "k": 1}


def test_evaluation_is_white_positive() -> None:
    missing_black_queen = Board.from_fen("rnb1kbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1")
    assert evaluate(missing_black_queen) == 900
    missing_white_knight = Board.from_fen("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/R1BQKBNR w KQkq - 0 1")
    assert evaluate(missing_white_knight) == -320
    assert material_summary(missing_white_knight)["balance"] == -3.2


@pytest.mark.parametrize(
    "score,text",
    [
        (0, "+0.00"),
        (35, "+0.35"),
        (-120, "-1.20"),
        (1250, "+12.5"),
        (-2000, "-20.0"),
        (math.inf, "+M"),
        (-math.inf, "-M"),
    ],
)
def test_format_evaluation(score: float, text: str) -> None:
    assert format_evaluation(score) == text


def test_evaluation_ratio_clamps() -> None:
    assert evaluation_ratio(0) == 0.5
    assert evaluation_ratio(10_000) == 1.0
    assert evaluation_ratio(-10_000) == 0.0
    assert evaluation_ratio(math.inf) == 1.0
    assert evaluation_ratio(-math.inf) == 0.0
