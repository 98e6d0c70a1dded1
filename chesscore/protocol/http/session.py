from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional

from ...engine.game import Game


DEFAULT_MAX_SESSIONS = 1024


@dataclass
class GameSession:
    """One client's game and the lock that serialises every access to it.

    Routes hold ``lock`` for the whole read-modify-write, so a search that
    applies its best move sees the same position it searched.
    """

    game: Game
    lock: threading.RLock = field(default_factory=threading.RLock)


class InMemorySessionStore:
    """Thread-safe in-memory game session store.

    Each session owns one ``Game``; there is no shared engine state. The
    store is bounded: once ``max_sessions`` is reached the least recently
    used session is dropped to make room.
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._lock = threading.RLock()
        self._sessions: "OrderedDict[str, GameSession]" = OrderedDict()
        self._max_sessions = max_sessions

    def create(self, game: Optional[Game] = None) -> str:
        """Create a new game session and return its `game_id`."""
        gid = str(uuid.uuid4())
        if game is None:
            game = Game.new()
        with self._lock:
            while len(self._sessions) >= self._max_sessions:
                self._sessions.popitem(last=False)
            self._sessions[gid] = GameSession(game)
        return gid

    def get(self, game_id: str) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(game_id)
            if session is not None:
                self._sessions.move_to_end(game_id)
            return session

    def delete(self, game_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(game_id, None) is not None

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
