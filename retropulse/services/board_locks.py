"""Per-board write serialization."""

from __future__ import annotations

import asyncio


class BoardLocks:
    """
    One asyncio.Lock per board, for single-instance serialization.

    Multi-card mutations (link, unlink, react, delete, create with quota)
    hold their board's lock so aggregate deltas and quota checks never
    interleave within this process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def for_board(self, board_id: str) -> asyncio.Lock:
        if board_id not in self._locks:
            self._locks[board_id] = asyncio.Lock()
        return self._locks[board_id]

    def discard(self, board_id: str) -> None:
        """Forget a board's lock once the board is gone."""
        lock = self._locks.get(board_id)
        if lock is not None and not lock.locked():
            del self._locks[board_id]
