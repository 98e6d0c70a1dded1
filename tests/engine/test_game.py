from __future__ import annotations

import pytest

from chesscore.engine.board import BP, STARTPOS_FEN, WP
from chesscore.engine.errors import FormatError, IllegalMoveError
from chesscore.engine.game import STATUS_LABELS, Game
from chesscore.engine.move import Move, parse_uci, str_to_square


def _play(game: Game, *sans: str) -> None:
    for san in sans:
        game.make_san_move(san)


def test_opening_moves_render_san() -> None:
    game = Game.new()
    _play(game, "e4", "e5", "Nf3")
    assert game.move_history_san() == ["e4", "e5", "Nf3"]
    assert game.move_history_uci() == ["e2e4", "e7e5", "g1f3"]
    assert game.to_fen() == "rnbqkbnr/pppp1ppp/8/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R b KQkq - 1 2"


def test_en_passant_through_game() -> None:
    game = Game.new()
    _play(game, "e4", "a6", "e5", "d5")
    mv = game.make_san_move("exd6")
    assert mv.en_passant
    d5 = str_to_square("d5")
    d6 = str_to_square("d6")
    assert ((game.board.bb[BP] >> d5) & 1) == 0
    assert (game.board.bb[WP] >> d6) & 1


def test_fools_mate_is_checkmate() -> None:
    game = Game.new()
    _play(game, "f3", "e5", "g4")
    mv = game.make_san_move("Qh4#")
    assert mv.san == "Qh4#"
    assert game.game_status() == "checkmate"
    assert game.checkmate() and game.in_check()
    assert not game.is_draw()
    assert game.legal_moves() == []


def test_make_move_by_structure() -> None:
    game = Game.new()
    mv = game.make_move(parse_uci("g1f3"))
    assert mv.san == "Nf3"
    assert mv.piece == "n"
    # A piece kind that does not match the mover is rejected
    with pytest.raises(IllegalMoveError):
        game.make_move(Move(str_to_square("e7"), str_to_square("e5"), piece="n"))
    game.make_move(Move(str_to_square("e7"), str_to_square("e5"), piece="p"))
    assert game.move_history_san() == ["Nf3", "e5"]


def test_promotion_requires_matching_piece() -> None:
    game = Game.from_fen("k7/4P3/8/8/8/8/8/4K3 w - - 0 1")
    with pytest.raises(IllegalMoveError):
        game.make_move(parse_uci("e7e8"))
    mv = game.make_move(parse_uci("e7e8n"))
    assert mv.promotion == "n"


@pytest.mark.parametrize("san", ["e5", "Ke2", "Nf6", "O-O", "", "zz"])
def test_illegal_san_raises_and_leaves_game_untouched(san: str) -> None:
    game = Game.new()
    with pytest.raises(IllegalMoveError):
        game.make_san_move(san)
    assert game.to_fen() == STARTPOS_FEN
    assert game.move_history() == []


def test_san_lookup_tolerates_annotations_and_check_markers() -> None:
    game = Game.new()
    _play(game, "e4!", "e5?!", "Nf3+")
    assert game.move_history_san() == ["e4", "e5", "Nf3"]
    _play(game, "Nc6", "Bb5", "a6", "Bxc6", "dxc6")
    # Check marker omitted
    game.reset("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
    mv = game.make_san_move("Ra8")
    assert mv.san == "Ra8+"


def test_undo_and_redo_restore_positions() -> None:
    game = Game.new()
    _play(game, "e4", "e5")
    after_e4_e5 = game.to_fen()

    undone = game.undo()
    assert undone is not None and undone.san == "e5"
    assert game.to_fen() == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
    assert game.can_redo()

    redone = game.redo()
    assert redone is not None and redone.san == "e5"
    assert game.to_fen() == after_e4_e5
    assert not game.can_redo()


def test_undo_at_root_and_redo_when_empty_return_none() -> None:
    game = Game.new()
    assert game.undo() is None
    assert game.redo() is None
    assert not game.can_undo()


def test_new_move_discards_redo_branch() -> None:
    game = Game.new()
    _play(game, "e4", "e5")
    game.undo()
    _play(game, "c5")
    assert not game.can_redo()
    assert game.redo() is None
    assert game.move_history_san() == ["e4", "c5"]


def test_threefold_repetition() -> None:
    game = Game.new()
    _play(game, "Nf3", "Nf6", "Ng1", "Ng8")
    assert game.repetition_count() == 2
    assert game.game_status() == "ongoing"
    _play(game, "Nf3", "Nf6", "Ng1", "Ng8")
    assert game.repetition_count() == 3
    assert game.game_status() == "threefold"
    assert game.is_draw()

    # Undo rebuilds the counts from history
    game.undo()
    assert game.game_status() == "ongoing"
    game.redo()
    assert game.game_status() == "threefold"


def test_fifty_move_rule() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/8/4K2R w - - 99 80")
    assert game.game_status() == "ongoing"
    game.make_san_move("Rh2")
    assert game.board.halfmove_clock == 100
    assert game.game_status() == "fifty-move"


def test_fifty_move_rule_is_checked_before_checkmate() -> None:
    game = Game.from_fen("7k/6Q1/6K1/8/8/8/8/8 b - - 100 1")
    assert game.checkmate()
    assert game.game_status() == "fifty-move"


def test_stalemate() -> None:
    game = Game.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    assert game.game_status() == "stalemate"
    assert game.stalemate() and game.is_draw()
    assert STATUS_LABELS[game.game_status()] == "Stalemate"


def test_reset_with_bad_fen_leaves_game_unchanged() -> None:
    game = Game.new()
    _play(game, "d4")
    with pytest.raises(FormatError):
        game.reset("not a fen")
    assert game.move_history_san() == ["d4"]

    game.reset()
    assert game.to_fen() == STARTPOS_FEN
    assert not game.can_undo()


def test_state_snapshot() -> None:
    game = Game.new()
    _play(game, "e4")
    state = game.state()
    assert state["fen"] == game.to_fen()
    assert state["side_to_move"] == "b"
    assert state["status"] == "ongoing"
    assert state["label"] == "Game in progress"
    assert state["in_check"] is False
    assert state["evaluation"] == 0
    assert state["history"] == ["e4"]
    assert state["pgn"] == "1. e4"
    assert state["can_undo"] is True and state["can_redo"] is False
    assert len(state["legal_moves"]) == 20
    assert {"san", "uci", "fen"} == set(state["legal_moves"][0])
    assert {"square": "e4", "color": "w", "piece": "p"} in state["pieces"]
    assert {"square": "e2", "color": "w", "piece": "p"} not in state["pieces"]


def test_game_perft_and_material_helpers() -> None:
    game = Game.new()
    assert game.perft(2) == 400
    summary = game.material_summary()
    assert summary["balance"] == 0
    assert game.evaluate() == 0


def test_search_with_apply_plays_the_best_move() -> None:
    # Queen d2 wins the undefended rook on a5
    game = Game.from_fen("4k3/8/8/r7/8/8/3Q4/4K3 w - - 0 1")
    res = game.search(depth=2, time_limit_ms=60_000, apply=True)
    assert res.best_move is not None and res.best_move.to_uci() == "d2a5"
    assert game.move_history_uci() == ["d2a5"]

    # Without apply the game is untouched
    before = game.to_fen()
    game.search(depth=1, time_limit_ms=60_000)
    assert game.to_fen() == before


def test_en_passant_is_the_single_flagged_reply() -> None:
    game = Game.new()
    _play(game, "e4", "a6", "e5", "d5")
    flagged = [m for m in game.legal_moves() if m.en_passant]
    assert [m.san for m in flagged] == ["exd6"]


def test_undo_all_then_redo_all_reproduces_history() -> None:
    game = Game.new()
    sans = ["d4", "Nf6", "c4", "e6", "Nc3", "Bb4", "Qc2", "O-O"]
    _play(game, *sans)
    final_fen = game.to_fen()
    while game.undo() is not None:
        pass
    assert game.to_fen() == STARTPOS_FEN
    while game.redo() is not None:
        pass
    assert game.move_history_san() == sans
    assert game.to_fen() == final_fen


def test_repetition_key_includes_castling_rights() -> None:
    game = Game.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    # Same squares as the root after each cycle, but king-side rights are gone
    for _ in range(2):
        _play(game, "Rh2", "Rh7", "Rh1", "Rh8")
    assert game.repetition_count() == 2
    assert game.game_status() == "ongoing"
    _play(game, "Rh2", "Rh7", "Rh1", "Rh8")
    assert game.game_status() == "threefold"
