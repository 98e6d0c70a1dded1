"""SAN construction and PGN text handling.

FEN lives on ``Board`` itself; this module covers the notations that need a
list of legal moves or a move history.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, List, Optional, Sequence

from .move import KING_SIDE, QUEEN_SIDE, Move, square_to_str

if TYPE_CHECKING:  # pragma: no cover
    from .board import Board


PIECE_LETTERS = {"n": "N", "b": "B", "r": "R", "q": "Q", "k": "K"}

RESULT_TOKENS = frozenset({"1-0", "0-1", "1/2-1/2", "*"})

_COMMENT_RE = re.compile(r"\{[^}]*\}")
_TAG_RE = re.compile(r"\[[^\]]*\]")
_MOVE_NUMBER_RE = re.compile(r"^\d+\.+")
_SAN_SUFFIX_RE = re.compile(r"[+#!?]+$")


def build_san(move: Move, child: "Board", legal_moves: Sequence[Move]) -> str:
    """Render ``move`` in Standard Algebraic Notation.

    Args:
        move (Move): Legal move to describe.
        child (Board): Position after ``move`` (used for the check suffix).
        legal_moves (Sequence[Move]): All legal moves of the parent position,
            used for disambiguation.

    Returns:
        str: SAN such as ``"Nbd2"``, ``"exd6"``, ``"e8=Q+"`` or ``"O-O-O"``.
    """
    if move.castle == KING_SIDE:
        san = "O-O"
    elif move.castle == QUEEN_SIDE:
        san = "O-O-O"
    elif move.piece == "p":
        san = ""
        if move.is_capture:
            san = square_to_str(move.from_sq)[0] + "x"
        san += square_to_str(move.to_sq)
        if move.promotion:
            san += "=" + move.promotion.upper()
    else:
        san = PIECE_LETTERS[move.piece or "p"]
        san += _disambiguation(move, legal_moves)
        if move.is_capture:
            san += "x"
        san += square_to_str(move.to_sq)

    if child.in_check():
        san += "+" if child.has_legal_moves() else "#"
    return san


def _disambiguation(move: Move, legal_moves: Sequence[Move]) -> str:
    rivals = [
        m
        for m in legal_moves
        if m.piece == move.piece and m.to_sq == move.to_sq and m.from_sq != move.from_sq
    ]
    if not rivals:
        return ""
    origin = square_to_str(move.from_sq)
    same_file = any(m.from_sq % 8 == move.from_sq % 8 for m in rivals)
    same_rank = any(m.from_sq // 8 == move.from_sq // 8 for m in rivals)
    if same_file and same_rank:
        return origin
    if same_file:
        return origin[1]
    return origin[0]


def strip_san_suffix(san: str) -> str:
    """Drop trailing check/mate markers and annotation glyphs (``+ # ! ?``)."""
    return _SAN_SUFFIX_RE.sub("", san)


def match_san(legal_moves: Sequence[Move], token: str) -> Optional[Move]:
    """Find the legal move whose SAN equals ``token``.

    An exact match wins; otherwise check markers and annotation glyphs are
    ignored on both sides.
    """
    for mv in legal_moves:
        if mv.san == token:
            return mv
    bare = strip_san_suffix(token)
    if not bare:
        return None
    for mv in legal_moves:
        if mv.san is not None and strip_san_suffix(mv.san) == bare:
            return mv
    return None


def export_pgn(sans: Sequence[str], first_color: str = "w", first_move_number: int = 1) -> str:
    """Join SAN moves into single-line movetext.

    Args:
        sans (Sequence[str]): Moves in play order.
        first_color (str): Side that played ``sans[0]``.
        first_move_number (int): Full-move number of the first move.

    Returns:
        str: Movetext like ``"1. e4 e5 2. Nf3"``; a game that starts with
        Black opens with ``"<n>... <move>"``.
    """
    parts: List[str] = []
    number = first_move_number
    i = 0
    if first_color == "b" and sans:
        parts.append(f"{number}... {sans[0]}")
        number += 1
        i = 1
    while i < len(sans):
        parts.append(f"{number}. " + " ".join(sans[i : i + 2]))
        number += 1
        i += 2
    return " ".join(parts)


def pgn_tokens(pgn: str) -> List[str]:
    """Extract SAN tokens from PGN text.

    Comments (``{...}``) and tag pairs (``[...]``) are removed, move numbers
    are stripped (including ones glued to a move, ``1.e4``), and result
    markers and numeric annotation glyphs (``$1``) are dropped.
    """
    text = _TAG_RE.sub(" ", _COMMENT_RE.sub(" ", pgn))
    tokens: List[str] = []
    for raw in text.split():
        tok = _MOVE_NUMBER_RE.sub("", raw)
        if not tok or tok in RESULT_TOKENS or tok.startswith("$"):
            continue
        tokens.append(tok)
    return tokens
