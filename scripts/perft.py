#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import time
import os
import sys

# Allow running this script directly via `python scripts/perft.py`
# by adding the repo root (which contains `chesscore/`) to sys.path.
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from chesscore.engine.board import Board, STARTPOS_FEN
from chesscore.engine.errors import FormatError
from chesscore.engine.perft import perft, run_perft_suite


def _run_suite() -> int:
    failures = 0
    for outcome in run_perft_suite():
        fx = outcome.fixture
        mark = "ok" if outcome.passed else "FAIL"
        print(f"[{mark}] {fx.name}: depth={fx.depth} expected={fx.expected} got={outcome.nodes}")
        if not outcome.passed:
            failures += 1
    return 1 if failures else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run perft on a given FEN and depth")
    parser.add_argument(
        "--fen", type=str, default=STARTPOS_FEN, help="FEN string (default: startpos)"
    )
    parser.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    parser.add_argument(
        "--expected", type=int, default=None, help="Exit non-zero unless the count matches"
    )
    parser.add_argument(
        "--suite", action="store_true", help="Run the built-in fixtures instead of --fen"
    )
    args = parser.parse_args()

    if args.suite:
        return _run_suite()

    try:
        board = Board.from_fen(args.fen)
    except FormatError as e:
        print(f"invalid FEN: {e}", file=sys.stderr)
        return 2
    start = time.perf_counter()
    nodes = perft(board, args.depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={args.depth} time_ms={int(dt*1000)} nps={int(nodes/max(dt,1e-9))}")
    if args.expected is not None and nodes != args.expected:
        print(f"mismatch: expected {args.expected}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
