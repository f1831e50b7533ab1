"""EventBroadcaster fan-out and BoardLocks."""

from __future__ import annotations

import pytest

from cardgraph import events
from retropulse.services.board_locks import BoardLocks
from retropulse.services.broadcaster import EventBroadcaster

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestEventBroadcaster:
    async def test_publish_reaches_only_board_subscribers(self):
        broadcaster = EventBroadcaster(queue_size=10)
        mine = broadcaster.subscribe("b1")
        theirs = broadcaster.subscribe("b2")

        delivered = broadcaster.publish(events.card_moved("b1", "c1", "col-2"))
        assert delivered == 1
        assert mine.get_nowait().payload["card_id"] == "c1"
        assert theirs.empty()

    async def test_publish_without_subscribers(self):
        broadcaster = EventBroadcaster(queue_size=10)
        assert broadcaster.publish(events.card_moved("b1", "c1", "col-2")) == 0

    async def test_full_queue_drops_oldest(self):
        broadcaster = EventBroadcaster(queue_size=2)
        queue = broadcaster.subscribe("b1")
        for col in ("col-1", "col-2", "col-3"):
            broadcaster.publish(events.card_moved("b1", "c1", col))

        assert queue.qsize() == 2
        assert [queue.get_nowait().payload["column_id"] for _ in range(2)] == ["col-2", "col-3"]

    async def test_unsubscribe(self):
        broadcaster = EventBroadcaster(queue_size=10)
        queue = broadcaster.subscribe("b1")
        assert broadcaster.subscriber_count("b1") == 1
        broadcaster.unsubscribe("b1", queue)
        assert broadcaster.subscriber_count("b1") == 0
        # Unsubscribing twice is harmless
        broadcaster.unsubscribe("b1", queue)


class TestBoardLocks:
    async def test_same_board_same_lock(self):
        locks = BoardLocks()
        assert locks.for_board("b1") is locks.for_board("b1")
        assert locks.for_board("b1") is not locks.for_board("b2")

    async def test_discard(self):
        locks = BoardLocks()
        first = locks.for_board("b1")
        locks.discard("b1")
        assert locks.for_board("b1") is not first
