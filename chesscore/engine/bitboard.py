"""Bitboard primitives: masks, precomputed attack tables, and ray casting.

Pure, deterministic, and side-effect free. Squares are 0..63 (a1=0 .. h8=63),
rank-major from white's perspective.
"""

from __future__ import annotations

from typing import Dict, Final, Iterator, List, Tuple

from .errors import UnsupportedDirectionError


FULL: Final = (1 << 64) - 1
EMPTY: Final = 0

# Step directions (square index deltas)
NORTH: Final = 8
SOUTH: Final = -8
EAST: Final = 1
WEST: Final = -1
NORTH_EAST: Final = 9
NORTH_WEST: Final = 7
SOUTH_EAST: Final = -7
SOUTH_WEST: Final = -9

# direction -> (file delta, rank delta)
_DIRECTION_STEPS: Dict[int, Tuple[int, int]] = {
    NORTH: (0, 1),
    SOUTH: (0, -1),
    EAST: (1, 0),
    WEST: (-1, 0),
    NORTH_EAST: (1, 1),
    NORTH_WEST: (-1, 1),
    SOUTH_EAST: (1, -1),
    SOUTH_WEST: (-1, -1),
}

BISHOP_DIRECTIONS: Final = (NORTH_EAST, NORTH_WEST, SOUTH_EAST, SOUTH_WEST)
ROOK_DIRECTIONS: Final = (NORTH, SOUTH, EAST, WEST)
QUEEN_DIRECTIONS: Final = BISHOP_DIRECTIONS + ROOK_DIRECTIONS

_KNIGHT_STEPS = ((-1, 2), (1, 2), (-2, 1), (2, 1), (-2, -1), (2, -1), (-1, -2), (1, -2))
_KING_STEPS = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))


def bit(sq: int) -> int:
    return 1 << sq


def get_bit(bb: int, sq: int) -> bool:
    return (bb >> sq) & 1 == 1


def pop_count(bb: int) -> int:
    return bb.bit_count()


def lsb_square(bb: int) -> int:
    """Return the index of the least significant set bit, or -1 when empty."""
    if bb == 0:
        return -1
    return (bb & -bb).bit_length() - 1


def iter_bits(bb: int) -> Iterator[int]:
    """Yield the square index of every set bit, lowest first."""
    while bb:
        lsb = bb & -bb
        yield lsb.bit_length() - 1
        bb ^= lsb


def _build_file_masks() -> List[int]:
    masks = []
    for file_idx in range(8):
        mask = 0
        for rank_idx in range(8):
            mask |= 1 << (rank_idx * 8 + file_idx)
        masks.append(mask)
    return masks


def _build_rank_masks() -> List[int]:
    return [0xFF << (8 * rank_idx) for rank_idx in range(8)]


def _build_diagonal_masks(anti: bool) -> List[int]:
    # 15 diagonals each way; index file-rank+7 (a1-h8 direction) or file+rank
    masks = [0] * 15
    for sq in range(64):
        f, r = sq % 8, sq // 8
        idx = f + r if anti else f - r + 7
        masks[idx] |= 1 << sq
    return masks


FILE_MASKS: Final = _build_file_masks()
RANK_MASKS: Final = _build_rank_masks()
DIAGONAL_MASKS: Final = _build_diagonal_masks(anti=False)
ANTIDIAGONAL_MASKS: Final = _build_diagonal_masks(anti=True)

FILE_A: Final = FILE_MASKS[0]
FILE_H: Final = FILE_MASKS[7]
RANK_1: Final = RANK_MASKS[0]
RANK_2: Final = RANK_MASKS[1]
RANK_7: Final = RANK_MASKS[6]
RANK_8: Final = RANK_MASKS[7]


def _build_step_table(steps: Tuple[Tuple[int, int], ...]) -> List[int]:
    table = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        mask = 0
        for df, dr in steps:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8:
                mask |= 1 << (tr * 8 + tf)
        table.append(mask)
    return table


def _build_pawn_table(forward: int) -> List[int]:
    return _build_step_table(((-1, forward), (1, forward)))


KNIGHT_ATTACKS: Final = _build_step_table(_KNIGHT_STEPS)
KING_ATTACKS: Final = _build_step_table(_KING_STEPS)
# PAWN_ATTACKS[is_white][sq]: squares a pawn of that color on sq attacks
PAWN_ATTACKS: Final = {True: _build_pawn_table(1), False: _build_pawn_table(-1)}


def ray_attacks(square: int, direction: int, occupied: int) -> int:
    """Walk from ``square`` in ``direction`` until the edge or a blocker.

    Args:
        square (int): Origin square index.
        direction (int): One of the eight compass deltas (±1, ±7, ±8, ±9).
        occupied (int): Occupancy bitboard used to stop the ray.

    Returns:
        int: Bitboard of every visited square, including the first blocker.

    Raises:
        UnsupportedDirectionError: If ``direction`` is not a compass delta.
    """
    step = _DIRECTION_STEPS.get(direction)
    if step is None:
        raise UnsupportedDirectionError(f"unsupported direction {direction}")
    df, dr = step
    tf, tr = square % 8 + df, square // 8 + dr
    attacks = 0
    while 0 <= tf < 8 and 0 <= tr < 8:
        target = tr * 8 + tf
        attacks |= 1 << target
        if (occupied >> target) & 1:
            break
        tf += df
        tr += dr
    return attacks


def bishop_attacks(square: int, occupied: int) -> int:
    attacks = 0
    for direction in BISHOP_DIRECTIONS:
        attacks |= ray_attacks(square, direction, occupied)
    return attacks


def rook_attacks(square: int, occupied: int) -> int:
    attacks = 0
    for direction in ROOK_DIRECTIONS:
        attacks |= ray_attacks(square, direction, occupied)
    return attacks


def queen_attacks(square: int, occupied: int) -> int:
    return bishop_attacks(square, occupied) | rook_attacks(square, occupied)
