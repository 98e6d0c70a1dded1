from __future__ import annotations


class ChessError(ValueError):
    """Base class for engine errors.

    Subclasses ``ValueError`` so callers that only guard against invalid input
    with ``except ValueError`` keep working.
    """


class FormatError(ChessError):
    """Malformed FEN (field count, rank layout, piece letters, counters)."""


class IllegalMoveError(ChessError):
    """Requested move or SAN token is not legal in the current position."""


class UnsupportedDirectionError(ChessError):
    """A ray was requested with a step that is not one of the eight compass deltas."""
