from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from ..eval import evaluate, material_summary
from ..search.service import SearchResult, SearchService
from .board import Board
from .errors import IllegalMoveError
from .move import Move, square_to_str
from .notation import export_pgn, match_san, pgn_tokens
from .perft import perft


STATUS_ONGOING = "ongoing"
STATUS_CHECKMATE = "checkmate"
STATUS_STALEMATE = "stalemate"
STATUS_FIFTY_MOVE = "fifty-move"
STATUS_THREEFOLD = "threefold"

STATUS_LABELS = {
    STATUS_ONGOING: "Game in progress",
    STATUS_CHECKMATE: "Checkmate",
    STATUS_STALEMATE: "Stalemate",
    STATUS_FIFTY_MOVE: "Draw · 50-move rule",
    STATUS_THREEFOLD: "Draw · Repetition",
}

STATUS_DESCRIPTIONS = {
    STATUS_ONGOING: "Explore the position, make a move, or ask the engine for its best reply.",
    STATUS_CHECKMATE: (
        "The side to move has been checkmated. Reset the board or load a new "
        "position to keep playing."
    ),
    STATUS_STALEMATE: "No legal moves remain while the king is not in check. It is a stalemate draw.",
    STATUS_FIFTY_MOVE: (
        "Fifty moves have passed with no pawn move or capture. Claim a draw or "
        "continue analysis from here."
    ),
    STATUS_THREEFOLD: (
        "The same position has occurred three times with the same rights "
        "available. A draw can be claimed."
    ),
}

DEFAULT_SEARCH_DEPTH = 4
DEFAULT_TIME_LIMIT_MS = 2500


@dataclass
class HistoryEntry:
    move: Optional[Move]
    board: Board


@dataclass
class Game:
    """Game controller: current position, undo/redo stacks, repetition counts.

    Responsibility: validate and apply moves, keep history and the redo stack
    in sync, classify the game status.

    Invariants:
    - ``history[0]`` is the root position (``move is None``) and
      ``history[-1].board`` is always the current board.
    - Making a new move discards the redo stack.
    """

    board: Board
    history: List[HistoryEntry] = field(default_factory=list)
    future: Deque[HistoryEntry] = field(default_factory=deque)
    repetition: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def new(cls, fen: Optional[str] = None) -> "Game":
        board = Board.from_fen(fen) if fen is not None else Board.startpos()
        return cls(board=board)

    @classmethod
    def from_fen(cls, fen: str) -> "Game":
        return cls(board=Board.from_fen(fen))

    def __post_init__(self) -> None:
        # Seed history and repetition with the root position
        if not self.history:
            self.history.append(HistoryEntry(move=None, board=self.board))
        if not self.repetition:
            self._rebuild_repetition()

    def to_fen(self, board: Optional[Board] = None) -> str:
        return (board or self.board).to_fen()

    def legal_moves(self) -> List[Move]:
        return self.board.generate_legal_moves()

    # --- Mutation ---
    def make_move(self, move: Move) -> Move:
        """Apply ``move`` if it structurally matches a legal move.

        Args:
            move (Move): Requested move; from/to/promotion must match, and the
                piece kind too when the request names one.

        Returns:
            Move: The matched legal move, with SAN and resulting FEN.

        Raises:
            IllegalMoveError: If no legal move matches.
        """
        for legal in self.legal_moves():
            if legal.matches(move):
                self._push(legal)
                return legal
        raise IllegalMoveError(f"illegal move: {move.to_uci()}")

    def make_san_move(self, san: str) -> Move:
        """Apply the legal move whose SAN equals ``san``.

        Trailing check markers and annotation glyphs are tolerated.

        Raises:
            IllegalMoveError: If ``san`` names no legal move.
        """
        legal = match_san(self.legal_moves(), san.strip())
        if legal is None:
            raise IllegalMoveError(f"illegal move: {san!r}")
        self._push(legal)
        return legal

    def _push(self, move: Move) -> None:
        self.board = self.board.apply_move(move)
        self.history.append(HistoryEntry(move=move, board=self.board))
        self.future.clear()
        self._record(self.board)

    def undo(self) -> Optional[Move]:
        """Step back one move; returns the undone move or ``None`` at the root."""
        if len(self.history) <= 1:
            return None
        entry = self.history.pop()
        self.future.appendleft(entry)
        self.board = self.history[-1].board
        self._rebuild_repetition()
        return entry.move

    def redo(self) -> Optional[Move]:
        """Replay the most recently undone move; ``None`` when nothing to redo."""
        if not self.future:
            return None
        entry = self.future.popleft()
        self.history.append(entry)
        self.board = entry.board
        self._record(self.board)
        return entry.move

    def reset(self, fen: Optional[str] = None) -> None:
        """Start over from ``fen`` (default: standard start position).

        Raises:
            FormatError: If ``fen`` is malformed; the game is left unchanged.
        """
        board = Board.from_fen(fen) if fen is not None else Board.startpos()
        self.board = board
        self.history = [HistoryEntry(move=None, board=board)]
        self.future.clear()
        self._rebuild_repetition()

    def can_undo(self) -> bool:
        return len(self.history) > 1

    def can_redo(self) -> bool:
        return bool(self.future)

    def _record(self, board: Board) -> None:
        key = board.position_key()
        self.repetition[key] = self.repetition.get(key, 0) + 1

    def _rebuild_repetition(self) -> None:
        self.repetition.clear()
        for entry in self.history:
            self._record(entry.board)

    # --- Status ---
    def in_check(self) -> bool:
        return self.board.in_check()

    def checkmate(self) -> bool:
        return self.board.in_check() and not self.board.has_legal_moves()

    def stalemate(self) -> bool:
        return not self.board.in_check() and not self.board.has_legal_moves()

    def repetition_count(self) -> int:
        return self.repetition.get(self.board.position_key(), 0)

    def game_status(self) -> str:
        """Classify the current position.

        Checked in order: fifty-move rule, threefold repetition, checkmate,
        stalemate. Anything else is ``"ongoing"``.
        """
        if self.board.halfmove_clock >= 100:
            return STATUS_FIFTY_MOVE
        if self.repetition_count() >= 3:
            return STATUS_THREEFOLD
        if not self.board.has_legal_moves():
            return STATUS_CHECKMATE if self.board.in_check() else STATUS_STALEMATE
        return STATUS_ONGOING

    def is_draw(self) -> bool:
        return self.game_status() in (STATUS_STALEMATE, STATUS_FIFTY_MOVE, STATUS_THREEFOLD)

    # --- History / notation ---
    def move_history(self) -> List[Move]:
        return [entry.move for entry in self.history[1:] if entry.move is not None]

    def move_history_san(self) -> List[str]:
        return [m.san or m.to_uci() for m in self.move_history()]

    def move_history_uci(self) -> List[str]:
        return [m.to_uci() for m in self.move_history()]

    def export_pgn(self) -> str:
        root = self.history[0].board
        return export_pgn(self.move_history_san(), root.side_to_move, root.fullmove_number)

    def import_pgn(self, pgn: str) -> None:
        """Replace the game with the moves in ``pgn``, replayed from the start position.

        Raises:
            IllegalMoveError: On the first token that is not a legal SAN move.
                The game is left unchanged.
        """
        replay = Game.new()
        for token in pgn_tokens(pgn):
            replay.make_san_move(token)
        self.board = replay.board
        self.history = replay.history
        self.future = replay.future
        self.repetition = replay.repetition

    # --- Engine helpers ---
    def evaluate(self) -> int:
        return evaluate(self.board)

    def material_summary(self) -> Dict[str, Any]:
        return material_summary(self.board)

    def perft(self, depth: int) -> int:
        return perft(self.board, depth)

    def search(
        self,
        depth: int = DEFAULT_SEARCH_DEPTH,
        time_limit_ms: int = DEFAULT_TIME_LIMIT_MS,
        apply: bool = False,
    ) -> SearchResult:
        """Search the current position; with ``apply`` the best move is played."""
        result = SearchService().search(self.board, depth=depth, time_limit_ms=time_limit_ms)
        if apply and result.best_move is not None:
            self.make_move(result.best_move)
        return result

    def state(self) -> Dict[str, Any]:
        """Snapshot of everything a client needs to render the game."""
        status = self.game_status()
        return {
            "fen": self.board.to_fen(),
            "side_to_move": self.board.side_to_move,
            "legal_moves": [
                {"san": m.san, "uci": m.to_uci(), "fen": m.fen} for m in self.legal_moves()
            ],
            "status": status,
            "label": STATUS_LABELS[status],
            "description": STATUS_DESCRIPTIONS[status],
            "in_check": self.board.in_check(),
            "evaluation": self.evaluate(),
            "history": self.move_history_san(),
            "pgn": self.export_pgn(),
            "can_undo": self.can_undo(),
            "can_redo": self.can_redo(),
            "halfmove_clock": self.board.halfmove_clock,
            "fullmove_number": self.board.fullmove_number,
            "pieces": [
                {"square": square_to_str(sq), "color": color, "piece": kind}
                for sq, color, kind in self.board.pieces()
            ],
        }
