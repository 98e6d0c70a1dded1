from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .board import STARTPOS_FEN, Board


@dataclass(frozen=True)
class PerftFixture:
    name: str
    fen: str
    depth: int
    expected: int


@dataclass(frozen=True)
class PerftOutcome:
    fixture: PerftFixture
    nodes: int

    @property
    def passed(self) -> bool:
        return self.nodes == self.fixture.expected


PERFT_FIXTURES: List[PerftFixture] = [
    PerftFixture("startpos d1", STARTPOS_FEN, 1, 20),
    PerftFixture("startpos d2", STARTPOS_FEN, 2, 400),
    PerftFixture("startpos d3", STARTPOS_FEN, 3, 8902),
    PerftFixture(
        "king walk d2",
        "rnbq1bnr/ppppkppp/8/4p3/3P4/5N2/PPP1PPPP/RNBQKB1R w KQ - 2 4",
        2,
        743,
    ),
]


def perft(board: Board, depth: int) -> int:
    """Compute perft node count for `board` at `depth`.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = board.generate_legal_moves(notation=False)
    if depth == 1:
        return len(moves)
    nodes = 0
    for m in moves:
        nodes += perft(board.apply_move(m), depth - 1)
    return nodes


def run_perft_suite(fixtures: Optional[Sequence[PerftFixture]] = None) -> List[PerftOutcome]:
    """Run each fixture and report the node count it produced."""
    outcomes: List[PerftOutcome] = []
    for fx in fixtures if fixtures is not None else PERFT_FIXTURES:
        outcomes.append(PerftOutcome(fixture=fx, nodes=perft(Board.from_fen(fx.fen), fx.depth)))
    return outcomes
