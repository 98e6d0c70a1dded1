from __future__ import annotations

from chesscore.engine.board import Board, STARTPOS_FEN


def moves_set(b: Board) -> set[str]:
    return {m.to_uci() for m in b.generate_legal_moves(notation=False)}


def san_set(b: Board) -> set[str]:
    return {m.san or "" for m in b.generate_legal_moves()}


def test_startpos_has_twenty_moves_with_notation() -> None:
    b = Board.from_fen(STARTPOS_FEN)
    moves = b.generate_legal_moves()
    assert len(moves) == 20
    assert {"e4", "e3", "Nf3", "Na3"} <= {m.san for m in moves}
    e4 = next(m for m in moves if m.san == "e4")
    assert e4.fen == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
    assert e4.double_push and e4.piece == "p" and e4.color == "w"


def test_pseudo_legal_includes_moves_that_expose_the_king() -> None:
    # Rook e2 pinned by rook e8
    b = Board.from_fen("4r3/8/8/8/8/8/4R3/4K3 w - - 0 1")
    pseudo = {m.to_uci() for m in b.generate_pseudo_legal_moves()}
    legal = moves_set(b)
    assert "e2d2" in pseudo and "e2f2" in pseudo
    assert "e2d2" not in legal and "e2f2" not in legal
    # Moving along the pin line stays legal
    assert {"e2e3", "e2e8"} <= legal


def test_rook_basic_moves() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
    assert {"a1a2", "a1a8", "a1b1", "a1d1"} <= moves_set(b)
    assert "a1e1" not in moves_set(b)


def test_bishop_basic_moves() -> None:
    b = Board.from_fen("4k3/8/8/8/8/8/8/2B1K3 w - - 0 1")
    assert {"c1b2", "c1a3", "c1d2", "c1h6"} <= moves_set(b)


def test_king_cannot_step_into_attack() -> None:
    # Black rook on d8 covers the d-file
    b = Board.from_fen("3rk3/8/8/8/8/8/8/4K3 w - - 0 1")
    ms = moves_set(b)
    assert "e1d1" not in ms and "e1d2" not in ms
    assert {"e1e2", "e1f1", "e1f2"} <= ms


def test_only_check_evasions_are_legal() -> None:
    # Rook e8 checks king e1 and the a1 rook cannot interpose
    b = Board.from_fen("4r2k/8/8/8/8/8/8/R3K3 w - - 0 1")
    ms = moves_set(b)
    assert b.in_check()
    assert "a1e1" not in ms
    assert ms == {"e1d1", "e1d2", "e1f1", "e1f2"}


def test_check_detection_by_each_piece_kind() -> None:
    assert Board.from_fen("4k3/8/8/8/8/8/3p4/4K3 w - - 0 1").in_check()
    assert Board.from_fen("4k3/8/8/8/8/3n4/8/4K3 w - - 0 1").in_check()
    assert Board.from_fen("4k3/8/8/8/8/8/8/r3K3 w - - 0 1").in_check()
    assert Board.from_fen("4k3/8/8/b7/8/8/8/4K3 w - - 0 1").in_check()
    assert not Board.from_fen("4k3/8/8/8/8/8/4p3/4K3 w - - 0 1").in_check()
    # Blocked slider does not check
    assert not Board.from_fen("4k3/8/8/8/8/8/8/r1N1K3 w - - 0 1").in_check()


def test_pawn_pushes_and_blocks() -> None:
    b = Board.from_fen("4k3/8/8/8/8/4n3/4P3/4K3 w - - 0 1")
    ms = moves_set(b)
    assert "e2e3" not in ms and "e2e4" not in ms
    b = Board.from_fen("4k3/8/8/8/4n3/8/4P3/4K3 w - - 0 1")
    ms = moves_set(b)
    assert "e2e3" in ms and "e2e4" not in ms


def test_has_legal_moves_matches_generation() -> None:
    stalemate = Board.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    assert not stalemate.has_legal_moves()
    assert stalemate.generate_legal_moves() == []
    assert Board.startpos().has_legal_moves()
