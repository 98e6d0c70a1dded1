from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    chess_error_handler,
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from ...engine.board import STARTPOS_FEN, Board
from ...engine.errors import ChessError, FormatError, IllegalMoveError
from ...engine.game import DEFAULT_SEARCH_DEPTH, DEFAULT_TIME_LIMIT_MS, Game
from ...engine.move import parse_uci
from ...engine.perft import perft as perft_nodes
from ...eval import format_evaluation
from ...search.service import MAX_DEPTH, SearchResult
from .session import GameSession, InMemorySessionStore


logger = logging.getLogger(__name__)

_UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")


class CreateGameRequest(BaseModel):
    fen: Optional[str] = Field(default=None, description="Starting FEN; standard start if omitted")


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string")


class MoveRequest(BaseModel):
    move: str = Field(..., min_length=1, description="SAN (e.g. Nf3) or UCI (e.g. g1f3) move")


class PgnRequest(BaseModel):
    pgn: str = Field(..., description="Movetext, optionally with tags and comments")


class SearchRequest(BaseModel):
    depth: int = Field(default=DEFAULT_SEARCH_DEPTH, ge=1, le=MAX_DEPTH)
    time_limit_ms: int = Field(default=DEFAULT_TIME_LIMIT_MS, ge=1, le=60_000)
    apply: bool = Field(default=False, description="Play the best move on the game")


class PerftRequest(BaseModel):
    fen: str = Field(default=STARTPOS_FEN)
    depth: int = Field(default=1, ge=0, le=5)


class LegalMove(BaseModel):
    san: str
    uci: str
    fen: str


class PieceOnSquare(BaseModel):
    square: str
    color: str
    piece: str


class GameState(BaseModel):
    game_id: str
    fen: str
    side_to_move: str
    legal_moves: list[LegalMove]
    pieces: list[PieceOnSquare]
    status: str
    label: str
    description: str
    in_check: bool
    evaluation: int
    evaluation_text: str
    last_move: Optional[str]
    move_history: list[str]
    pgn: str
    can_undo: bool
    can_redo: bool


class PgnResponse(BaseModel):
    game_id: str
    pgn: str


def create_app() -> FastAPI:
    app = FastAPI(title="chesscore API", version="0.1.0")

    # Basic logging setup
    logging.basicConfig(level=logging.INFO)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    # Preserve FastAPI 422 validation behavior and structured HTTP errors
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(ChessError, chess_error_handler)
    app.add_exception_handler(Exception, exception_handler)

    # In-memory session store for games
    store = InMemorySessionStore()
    app.state.sessions = store

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        fen = req.fen if req is not None else None
        try:
            game = Game.new(fen)
        except FormatError as e:
            raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")
        game_id = store.create(game)
        logger.info("game created", extra={"game_id": game_id})
        return CreateGameResponse(game_id=game_id, fen=game.to_fen())

    @app.delete("/api/games/{game_id}")
    async def delete_game(game_id: str) -> Dict[str, str]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"status": "deleted"}

    # Game routes are plain def: waiting on a session lock happens in the
    # threadpool, never on the event loop
    @app.get("/api/games/{game_id}/state", response_model=GameState)
    def get_state(game_id: str) -> GameState:
        session = _require_session(store, game_id)
        with session.lock:
            return _state(game_id, session.game)

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        session = _require_session(store, game_id)
        with session.lock:
            try:
                session.game.reset(req.fen)
            except FormatError as e:
                raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")
            return _state(game_id, session.game)

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    def make_move(game_id: str, req: MoveRequest) -> GameState:
        session = _require_session(store, game_id)
        text = req.move.strip()
        with session.lock:
            try:
                if _UCI_RE.match(text):
                    session.game.make_move(parse_uci(text))
                else:
                    session.game.make_san_move(text)
            except (FormatError, IllegalMoveError) as e:
                raise HTTPException(status_code=400, detail=str(e))
            return _state(game_id, session.game)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    def undo(game_id: str) -> GameState:
        session = _require_session(store, game_id)
        with session.lock:
            if session.game.undo() is None:
                raise HTTPException(status_code=400, detail="no moves to undo")
            return _state(game_id, session.game)

    @app.post("/api/games/{game_id}/redo", response_model=GameState)
    def redo(game_id: str) -> GameState:
        session = _require_session(store, game_id)
        with session.lock:
            if session.game.redo() is None:
                raise HTTPException(status_code=400, detail="no moves to redo")
            return _state(game_id, session.game)

    @app.get("/api/games/{game_id}/pgn", response_model=PgnResponse)
    def export_pgn(game_id: str) -> PgnResponse:
        session = _require_session(store, game_id)
        with session.lock:
            return PgnResponse(game_id=game_id, pgn=session.game.export_pgn())

    @app.post("/api/games/{game_id}/pgn", response_model=GameState)
    def import_pgn(game_id: str, req: PgnRequest) -> GameState:
        session = _require_session(store, game_id)
        with session.lock:
            try:
                session.game.import_pgn(req.pgn)
            except IllegalMoveError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return _state(game_id, session.game)

    # The lock is held from search through apply
    @app.post("/api/games/{game_id}/search")
    def search(game_id: str, req: SearchRequest) -> Dict[str, Any]:
        session = _require_session(store, game_id)
        with session.lock:
            game = session.game
            res = game.search(depth=req.depth, time_limit_ms=req.time_limit_ms, apply=req.apply)
            fen = game.to_fen()
        logger.info(
            "search finished",
            extra={
                "game_id": game_id,
                "depth": res.depth,
                "nodes": res.nodes,
                "time_ms": res.time_ms,
            },
        )
        return {
            "best_move": res.best_move.to_uci() if res.best_move else None,
            "best_move_san": res.best_move.san if res.best_move else None,
            "score": _score(res),
            "score_text": format_evaluation(res.evaluation),
            "nodes": res.nodes,
            "depth": res.depth,
            "time_ms": res.time_ms,
            "applied": bool(req.apply and res.best_move is not None),
            "fen": fen,
        }

    @app.post("/api/perft")
    def perft(req: PerftRequest) -> Dict[str, Any]:
        try:
            board = Board.from_fen(req.fen)
        except FormatError as e:
            raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")
        return {"fen": board.to_fen(), "depth": req.depth, "nodes": perft_nodes(board, req.depth)}

    return app


def _require_session(store: InMemorySessionStore, game_id: str) -> GameSession:
    session = store.get(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail="game not found")
    return session


def _state(game_id: str, game: Game) -> GameState:
    snapshot = game.state()
    history = game.move_history_uci()
    return GameState(
        game_id=game_id,
        fen=snapshot["fen"],
        side_to_move=snapshot["side_to_move"],
        legal_moves=[LegalMove(**m) for m in snapshot["legal_moves"]],
        pieces=[PieceOnSquare(**p) for p in snapshot["pieces"]],
        status=snapshot["status"],
        label=snapshot["label"],
        description=snapshot["description"],
        in_check=snapshot["in_check"],
        evaluation=snapshot["evaluation"],
        evaluation_text=format_evaluation(snapshot["evaluation"]),
        last_move=history[-1] if history else None,
        move_history=snapshot["history"],
        pgn=snapshot["pgn"],
        can_undo=snapshot["can_undo"],
        can_redo=snapshot["can_redo"],
    )


def _score(res: SearchResult) -> Dict[str, int]:
    # Infinite evaluations are not valid JSON numbers
    if res.mate is not None:
        return {"mate": res.mate}
    return {"cp": int(res.evaluation)}


# Default app for non-factory servers
app = create_app()
