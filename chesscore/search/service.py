from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple
import math
import time

from chesscore.engine.board import WHITE, Board
from chesscore.engine.move import Move
from chesscore.eval import PIECE_VALUES, evaluate


MAX_DEPTH = 6


@dataclass
class SearchResult:
    best_move: Optional[Move]
    depth: int
    evaluation: float  # centipawns from the searching side's view; +/-inf is a forced mate
    nodes: int
    time_ms: int

    @property
    def mate(self) -> Optional[int]:
        """+1 when the searching side mates, -1 when it gets mated, else None."""
        if math.isinf(self.evaluation):
            return 1 if self.evaluation > 0 else -1
        return None


class SearchService:
    """Iterative-deepening alpha-beta over material evaluation.

    Every depth shares one wall-clock deadline. Depth 1 always completes so a
    legal move is available whenever one exists; a deeper iteration that
    finishes past the deadline is thrown away.
    """

    def search(
        self,
        board: Board,
        depth: int = 4,
        time_limit_ms: int = 2500,
    ) -> SearchResult:
        max_depth = max(1, min(depth, MAX_DEPTH))
        start = time.perf_counter()
        deadline = start + max(0, time_limit_ms) / 1000.0
        root_color = board.side_to_move

        best_move: Optional[Move] = None
        best_eval = 0.0
        reached = 0
        nodes = 0
        for d in range(1, max_depth + 1):
            if d > 1 and time.perf_counter() >= deadline:
                break
            move, score, n = self._search_root(board, d, root_color, deadline)
            nodes += n
            if d > 1 and time.perf_counter() > deadline:
                # Partial iteration: cut-off subtrees returned leaf scores
                break
            best_move, best_eval, reached = move, score, d

        time_ms = int((time.perf_counter() - start) * 1000)
        return SearchResult(
            best_move=best_move,
            depth=reached,
            evaluation=best_eval,
            nodes=nodes,
            time_ms=time_ms,
        )

    def _search_root(
        self, board: Board, depth: int, root_color: str, deadline: float
    ) -> Tuple[Optional[Move], float, int]:
        moves = _ordered(board.generate_legal_moves())
        if not moves:
            return None, _terminal_score(board, root_color), 1

        nodes = 1
        best_move = moves[0]
        best = -math.inf
        alpha, beta = -math.inf, math.inf
        for mv in moves:
            score, n = self.alpha_beta(
                board.apply_move(mv), depth - 1, alpha, beta, root_color, deadline
            )
            nodes += n
            if score > best:
                best, best_move = score, mv
            alpha = max(alpha, best)
        return best_move, best, nodes

    def alpha_beta(
        self,
        board: Board,
        depth: int,
        alpha: float,
        beta: float,
        root_color: str,
        deadline: float,
    ) -> Tuple[float, int]:
        """Minimax with alpha/beta cutoffs; returns ``(score, nodes)``.

        Scores are from ``root_color``'s point of view: the root side
        maximizes, the opponent minimizes.
        """
        nodes = 1
        if depth == 0 or time.perf_counter() > deadline:
            return _leaf_score(board, root_color), nodes

        moves = board.generate_legal_moves(notation=False)
        if not moves:
            return _terminal_score(board, root_color), nodes

        if board.side_to_move == root_color:
            value = -math.inf
            for mv in _ordered(moves):
                score, n = self.alpha_beta(
                    board.apply_move(mv), depth - 1, alpha, beta, root_color, deadline
                )
                nodes += n
                value = max(value, score)
                alpha = max(alpha, value)
                if alpha >= beta:
                    break
        else:
            value = math.inf
            for mv in _ordered(moves):
                score, n = self.alpha_beta(
                    board.apply_move(mv), depth - 1, alpha, beta, root_color, deadline
                )
                nodes += n
                value = min(value, score)
                beta = min(beta, value)
                if alpha >= beta:
                    break
        return value, nodes


def _leaf_score(board: Board, root_color: str) -> float:
    score = evaluate(board)
    return float(score if root_color == WHITE else -score)


def _terminal_score(board: Board, root_color: str) -> float:
    if not board.in_check():
        return 0.0
    # Side to move is mated
    return -math.inf if board.side_to_move == root_color else math.inf


def _ordered(moves: List[Move]) -> List[Move]:
    # Captures first, most valuable victim first; stable for quiet moves
    return sorted(
        moves,
        key=lambda m: -(PIECE_VALUES[m.captured] if m.captured is not None else 0),
    )
