from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Tuple

from .bitboard import (
    KING_ATTACKS,
    KNIGHT_ATTACKS,
    PAWN_ATTACKS,
    bishop_attacks,
    get_bit,
    iter_bits,
    lsb_square,
    queen_attacks,
    rook_attacks,
)
from .errors import FormatError
from .move import KING_SIDE, PROMOTION_PIECES, QUEEN_SIDE, Move, square_to_str, str_to_square
from .notation import build_san


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

WHITE = "w"
BLACK = "b"
COLORS = (WHITE, BLACK)

# Piece kinds (lowercase letters, shared with promotion encoding)
PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = "p", "n", "b", "r", "q", "k"
PIECE_KINDS = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)

# Piece indices for bitboards
WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK = range(12)
PIECE_ORDER = [WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK]
PIECE_TO_CHAR = {
    WP: "P",
    WN: "N",
    WB: "B",
    WR: "R",
    WQ: "Q",
    WK: "K",
    BP: "p",
    BN: "n",
    BB: "b",
    BR: "r",
    BQ: "q",
    BK: "k",
}
CHAR_TO_PIECE = {v: k for k, v in PIECE_TO_CHAR.items()}

# (color, kind) <-> bitboard index
PIECE_INDEX: Dict[Tuple[str, str], int] = {
    (color, kind): offset + i
    for color, offset in ((WHITE, 0), (BLACK, 6))
    for i, kind in enumerate(PIECE_KINDS)
}
INDEX_TO_PIECE: Dict[int, Tuple[str, str]] = {v: k for k, v in PIECE_INDEX.items()}

KING_START = {WHITE: 4, BLACK: 60}
ROOK_START = {
    WHITE: {KING_SIDE: 7, QUEEN_SIDE: 0},
    BLACK: {KING_SIDE: 63, QUEEN_SIDE: 56},
}


def opponent(color: str) -> str:
    return BLACK if color == WHITE else WHITE


@dataclass(frozen=True)
class CastlingRights:
    """Four independent castling flags."""

    white_king_side: bool = False
    white_queen_side: bool = False
    black_king_side: bool = False
    black_queen_side: bool = False

    @classmethod
    def from_fen(cls, field: str) -> "CastlingRights":
        if field == "-":
            return cls()
        if not field or any(ch not in "KQkq" for ch in field):
            raise FormatError(f"invalid castling rights: {field!r}")
        return cls(
            white_king_side="K" in field,
            white_queen_side="Q" in field,
            black_king_side="k" in field,
            black_queen_side="q" in field,
        )

    def to_fen(self) -> str:
        letters = "".join(
            ch
            for ch, flag in (
                ("K", self.white_king_side),
                ("Q", self.white_queen_side),
                ("k", self.black_king_side),
                ("q", self.black_queen_side),
            )
            if flag
        )
        return letters or "-"

    def has(self, color: str, side: str) -> bool:
        return getattr(self, _castling_attr(color, side))

    def without(self, color: str, side: Optional[str] = None) -> "CastlingRights":
        """Return rights with one side (or both sides when ``side`` is None) cleared."""
        sides = (side,) if side is not None else (KING_SIDE, QUEEN_SIDE)
        return replace(self, **{_castling_attr(color, s): False for s in sides})


def _castling_attr(color: str, side: str) -> str:
    return ("white_" if color == WHITE else "black_") + (
        "king_side" if side == KING_SIDE else "queen_side"
    )


@dataclass
class Board:
    """Position snapshot: bitboards plus game metadata, with FEN I/O.

    Notes:
    - Squares are 0..63 (a1=0 .. h8=63), rank-major from white's perspective.
    - Transitions are pure: ``apply_move`` returns a new Board and never
      mutates the receiver.
    """

    # 12 piece bitboards, indexed by constants above
    bb: List[int]
    side_to_move: str  # 'w' or 'b'
    castling: CastlingRights
    ep_square: Optional[int]  # square index or None
    halfmove_clock: int
    fullmove_number: int

    @classmethod
    def startpos(cls) -> "Board":
        """Create a board initialized to the standard chess starting position.

        Returns:
            Board: Board instance representing the standard starting position.
        """
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "Board":
        """Create a board from a Forsyth–Edwards Notation (FEN) string.

        Args:
            fen (str): FEN string describing the position to load.

        Returns:
            Board: Board instance initialized with state encoded in ``fen``.

        Raises:
            FormatError: If ``fen`` is empty, has the wrong number of fields, or
                contains invalid piece placement, castling rights, en passant
                square, or move counters.
        """
        if not fen or not isinstance(fen, str):
            raise FormatError("FEN must be a non-empty string")
        parts = fen.strip().split()
        if len(parts) != 6:
            raise FormatError("FEN must have 6 fields")
        placement, stm, castling, ep, halfmove, fullmove = parts

        # Parse piece placement
        ranks = placement.split("/")
        if len(ranks) != 8:
            raise FormatError("FEN board must have 8 ranks")
        bb = [0] * 12
        for rank_idx, rank in enumerate(ranks[::-1]):  # start from rank 1 (bottom)
            file_idx = 0
            for ch in rank:
                if ch.isdigit():
                    n = int(ch)
                    if n < 1 or n > 8:
                        raise FormatError("invalid empty count in FEN rank")
                    file_idx += n
                else:
                    if ch not in CHAR_TO_PIECE:
                        raise FormatError(f"invalid piece in FEN: {ch!r}")
                    if file_idx >= 8:
                        raise FormatError("too many squares in FEN rank")
                    sq = rank_idx * 8 + file_idx
                    bb[CHAR_TO_PIECE[ch]] |= 1 << sq
                    file_idx += 1
            if file_idx != 8:
                raise FormatError(f"rank {rank!r} does not sum to 8 squares in FEN")

        if stm not in COLORS:
            raise FormatError("side to move must be 'w' or 'b'")

        rights = CastlingRights.from_fen(castling)

        ep_square: Optional[int]
        if ep == "-":
            ep_square = None
        else:
            try:
                ep_square = str_to_square(ep)
            except FormatError as e:
                raise FormatError("invalid en passant square") from e
            # ep target must be on rank 3 or 6
            if ep_square // 8 not in (2, 5):
                raise FormatError("invalid en passant square rank")

        try:
            halfmove_clock = int(halfmove)
            fullmove_number = int(fullmove)
        except ValueError as e:
            raise FormatError("invalid move counters in FEN") from e
        if halfmove_clock < 0 or fullmove_number <= 0:
            raise FormatError("invalid move counters in FEN")

        return cls(
            bb=bb,
            side_to_move=stm,
            castling=rights,
            ep_square=ep_square,
            halfmove_clock=halfmove_clock,
            fullmove_number=fullmove_number,
        )

    def to_fen(self) -> str:
        """Serialize the current position into a normalized FEN string.

        Returns:
            str: FEN string describing the board state.
        """
        ranks_str: List[str] = []
        for rank_idx in range(7, -1, -1):  # 7..0 maps to ranks 8..1
            run = 0
            row = []
            for file_idx in range(8):
                ch = self._piece_char_at(rank_idx * 8 + file_idx)
                if ch is None:
                    run += 1
                else:
                    if run > 0:
                        row.append(str(run))
                        run = 0
                    row.append(ch)
            if run > 0:
                row.append(str(run))
            ranks_str.append("".join(row))
        placement = "/".join(ranks_str)

        ep = square_to_str(self.ep_square) if self.ep_square is not None else "-"
        return (
            f"{placement} {self.side_to_move} {self.castling.to_fen()} {ep} "
            f"{self.halfmove_clock} {self.fullmove_number}"
        )

    # --- Lookups ---
    def _piece_char_at(self, sq: int) -> Optional[str]:
        for idx in PIECE_ORDER:
            if get_bit(self.bb[idx], sq):
                return PIECE_TO_CHAR[idx]
        return None

    def _kind_at(self, sq: int, color: str) -> Optional[str]:
        for kind in PIECE_KINDS:
            if get_bit(self.bb[PIECE_INDEX[(color, kind)]], sq):
                return kind
        return None

    def pieces(self) -> Iterator[Tuple[int, str, str]]:
        """Yield ``(square, color, kind)`` for every piece on the board."""
        for idx in PIECE_ORDER:
            color, kind = INDEX_TO_PIECE[idx]
            for sq in iter_bits(self.bb[idx]):
                yield sq, color, kind

    def occupancy(self, color: Optional[str] = None) -> int:
        if color is None:
            occ = 0
            for b in self.bb:
                occ |= b
            return occ
        base = 0 if color == WHITE else 6
        return (
            self.bb[base]
            | self.bb[base + 1]
            | self.bb[base + 2]
            | self.bb[base + 3]
            | self.bb[base + 4]
            | self.bb[base + 5]
        )

    def king_square(self, color: str) -> int:
        return lsb_square(self.bb[PIECE_INDEX[(color, KING)]])

    def position_key(self) -> str:
        """Key for repetition detection: bitboards, side, castling flags, ep square."""
        c = self.castling
        return "|".join(
            [
                ",".join(str(b) for b in self.bb),
                self.side_to_move,
                "K" if c.white_king_side else "-",
                "Q" if c.white_queen_side else "-",
                "k" if c.black_king_side else "-",
                "q" if c.black_queen_side else "-",
                str(self.ep_square) if self.ep_square is not None else "-",
            ]
        )

    # --- Attack queries ---
    def is_square_attacked(self, sq: int, by_color: str) -> bool:
        """Return True if ``sq`` is attacked by any piece of ``by_color``.

        Covers: pawns, knights, king, and slider rays for bishops/rooks/queens.
        """
        bb = self.bb
        by_white = by_color == WHITE
        base = 0 if by_white else 6

        # A pawn of by_color attacks sq iff it stands where an opposite pawn on sq would attack
        if PAWN_ATTACKS[not by_white][sq] & bb[base]:
            return True
        if KNIGHT_ATTACKS[sq] & bb[base + 1]:
            return True
        if KING_ATTACKS[sq] & bb[base + 5]:
            return True

        occ = self.occupancy()
        if bishop_attacks(sq, occ) & (bb[base + 2] | bb[base + 4]):
            return True
        if rook_attacks(sq, occ) & (bb[base + 3] | bb[base + 4]):
            return True
        return False

    def in_check(self, side: Optional[str] = None) -> bool:
        """Return True if `side` (default: current side to move) is in check."""
        s = self.side_to_move if side is None else side
        if s not in COLORS:
            raise ValueError("side must be 'w' or 'b'")
        ksq = self.king_square(s)
        if ksq < 0:
            return False
        return self.is_square_attacked(ksq, opponent(s))

    # --- Move generation ---
    def generate_pseudo_legal_moves(self) -> List[Move]:
        """Return every geometrically possible move for the side to move.

        Moves that leave the mover's own king attacked are included; see
        ``generate_legal_moves`` for the filtered list.
        """
        us = self.side_to_move
        them = opponent(us)
        is_white = us == WHITE
        occ_all = self.occupancy()
        occ_us = self.occupancy(us)
        occ_them = self.occupancy(them)
        moves: List[Move] = []

        # Pawns
        forward = 8 if is_white else -8
        start_rank = 1 if is_white else 6
        promo_rank = 6 if is_white else 1  # rank a pawn stands on before promoting
        for from_sq in iter_bits(self.bb[PIECE_INDEX[(us, PAWN)]]):
            rank_idx = from_sq // 8
            to_sq = from_sq + forward
            if 0 <= to_sq < 64 and not get_bit(occ_all, to_sq):
                if rank_idx == promo_rank:
                    for promo in PROMOTION_PIECES:
                        moves.append(Move(from_sq, to_sq, promo, piece=PAWN, color=us))
                else:
                    moves.append(Move(from_sq, to_sq, piece=PAWN, color=us))
                    to2 = to_sq + forward
                    if rank_idx == start_rank and not get_bit(occ_all, to2):
                        moves.append(Move(from_sq, to2, piece=PAWN, color=us, double_push=True))

            for cap in iter_bits(PAWN_ATTACKS[is_white][from_sq]):
                if get_bit(occ_them, cap):
                    captured = self._kind_at(cap, them)
                    if rank_idx == promo_rank:
                        for promo in PROMOTION_PIECES:
                            moves.append(
                                Move(from_sq, cap, promo, piece=PAWN, color=us, captured=captured)
                            )
                    else:
                        moves.append(Move(from_sq, cap, piece=PAWN, color=us, captured=captured))
                elif cap == self.ep_square and get_bit(
                    self.bb[PIECE_INDEX[(them, PAWN)]], cap - forward
                ):
                    moves.append(
                        Move(from_sq, cap, piece=PAWN, color=us, captured=PAWN, en_passant=True)
                    )

        # Knights, sliders, king
        for kind in (KNIGHT, BISHOP, ROOK, QUEEN, KING):
            for from_sq in iter_bits(self.bb[PIECE_INDEX[(us, kind)]]):
                targets = _attacks_from(kind, from_sq, occ_all) & ~occ_us
                for to_sq in iter_bits(targets):
                    captured = self._kind_at(to_sq, them) if get_bit(occ_them, to_sq) else None
                    moves.append(Move(from_sq, to_sq, piece=kind, color=us, captured=captured))

        moves.extend(self._castling_moves(us, them, occ_all))
        return moves

    def _castling_moves(self, us: str, them: str, occ_all: int) -> List[Move]:
        king_sq = KING_START[us]
        if not get_bit(self.bb[PIECE_INDEX[(us, KING)]], king_sq):
            return []
        if self.is_square_attacked(king_sq, them):
            return []
        rooks = self.bb[PIECE_INDEX[(us, ROOK)]]
        moves: List[Move] = []
        for side in (KING_SIDE, QUEEN_SIDE):
            if not self.castling.has(us, side):
                continue
            rook_sq = ROOK_START[us][side]
            if not get_bit(rooks, rook_sq):
                continue
            step = 1 if side == KING_SIDE else -1
            # Every square strictly between king and rook must be empty
            if any(get_bit(occ_all, sq) for sq in range(king_sq + step, rook_sq, step)):
                continue
            # Only the two squares the king crosses must be safe
            if any(self.is_square_attacked(king_sq + i * step, them) for i in (1, 2)):
                continue
            moves.append(Move(king_sq, king_sq + 2 * step, piece=KING, color=us, castle=side))
        return moves

    def _legal_with_children(self) -> List[Tuple[Move, "Board"]]:
        legal: List[Tuple[Move, Board]] = []
        for mv in self.generate_pseudo_legal_moves():
            child = self.apply_move(mv)
            if not child.in_check(mv.color):
                legal.append((mv, child))
        return legal

    def generate_legal_moves(self, *, notation: bool = True) -> List[Move]:
        """Return legal moves for the side to move.

        Args:
            notation (bool): When True, every move carries its SAN and the FEN
                of the resulting position. Internal tree walks pass False.

        Returns:
            List[Move]: Moves that do not leave the mover's king attacked.
        """
        legal = self._legal_with_children()
        plain = [mv for mv, _ in legal]
        if not notation:
            return plain
        return [
            replace(mv, san=build_san(mv, child, plain), fen=child.to_fen())
            for mv, child in legal
        ]

    def has_legal_moves(self) -> bool:
        """Return True if the side to move has at least one legal move."""
        for mv in self.generate_pseudo_legal_moves():
            if not self.apply_move(mv).in_check(mv.color):
                return True
        return False

    def apply_move(self, move: Move) -> "Board":
        """Return the position reached by playing ``move``.

        The move must come from this position's generator (its piece, capture,
        castle, en-passant and double-push fields are trusted). The receiver
        is left unchanged.
        """
        us = move.color or self.side_to_move
        them = opponent(us)
        bb = list(self.bb)
        from_mask = 1 << move.from_sq
        to_mask = 1 << move.to_sq
        moving = PIECE_INDEX[(us, move.piece)]

        bb[moving] &= ~from_mask

        # Captures: en passant removes the pawn behind the target square
        if move.en_passant:
            cap_sq = move.to_sq - 8 if us == WHITE else move.to_sq + 8
            bb[PIECE_INDEX[(them, PAWN)]] &= ~(1 << cap_sq)
        elif move.captured is not None:
            for kind in PIECE_KINDS:
                bb[PIECE_INDEX[(them, kind)]] &= ~to_mask

        if move.castle is not None:
            rook = PIECE_INDEX[(us, ROOK)]
            rook_from = ROOK_START[us][move.castle]
            rook_to = move.to_sq - 1 if move.castle == KING_SIDE else move.to_sq + 1
            bb[rook] &= ~(1 << rook_from)
            bb[rook] |= 1 << rook_to

        placed = PIECE_INDEX[(us, move.promotion)] if move.promotion else moving
        bb[placed] |= to_mask

        # Castling rights: king moves, rook leaves home, rook home captured on
        castling = self.castling
        if move.piece == KING:
            castling = castling.without(us)
        elif move.piece == ROOK:
            for side, sq in ROOK_START[us].items():
                if move.from_sq == sq:
                    castling = castling.without(us, side)
        if move.captured is not None:
            for side, sq in ROOK_START[them].items():
                if move.to_sq == sq:
                    castling = castling.without(them, side)

        if move.piece == PAWN or move.captured is not None:
            halfmove_clock = 0
        else:
            halfmove_clock = self.halfmove_clock + 1

        ep_square: Optional[int] = None
        if move.double_push:
            ep_square = (move.from_sq + move.to_sq) // 2

        return Board(
            bb=bb,
            side_to_move=them,
            castling=castling,
            ep_square=ep_square,
            halfmove_clock=halfmove_clock,
            fullmove_number=self.fullmove_number + (1 if us == BLACK else 0),
        )


def _attacks_from(kind: str, sq: int, occ_all: int) -> int:
    if kind == KNIGHT:
        return KNIGHT_ATTACKS[sq]
    if kind == BISHOP:
        return bishop_attacks(sq, occ_all)
    if kind == ROOK:
        return rook_attacks(sq, occ_all)
    if kind == QUEEN:
        return queen_attacks(sq, occ_all)
    return KING_ATTACKS[sq]
