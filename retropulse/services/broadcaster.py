"""Board event broadcaster — in-process fan-out of BoardEvents to subscribers."""

from __future__ import annotations

import asyncio
import logging

from cardgraph.types import BoardEvent
from retropulse.config import settings

logger = logging.getLogger(__name__)


class EventBroadcaster:
    """
    Fan out board events to every subscriber of that board.

    Each subscriber gets its own bounded asyncio.Queue. Publishing never
    blocks: when a subscriber's queue is full its oldest event is dropped.
    Delivery is best effort and ordered per subscriber.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = queue_size or settings.EVENT_QUEUE_SIZE
        self._subscribers: dict[str, set[asyncio.Queue[BoardEvent]]] = {}

    def subscribe(self, board_id: str) -> asyncio.Queue[BoardEvent]:
        queue: asyncio.Queue[BoardEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(board_id, set()).add(queue)
        logger.info("broadcaster: subscribed to board=%s (%d listeners)", board_id, len(self._subscribers[board_id]))
        return queue

    def unsubscribe(self, board_id: str, queue: asyncio.Queue[BoardEvent]) -> None:
        listeners = self._subscribers.get(board_id)
        if not listeners:
            return
        listeners.discard(queue)
        if not listeners:
            del self._subscribers[board_id]

    def subscriber_count(self, board_id: str) -> int:
        return len(self._subscribers.get(board_id, ()))

    def publish(self, event: BoardEvent) -> int:
        """
        Deliver an event to every subscriber of its board (non-blocking).

        Returns:
            Number of subscribers the event was queued for
        """
        listeners = self._subscribers.get(event.board_id, set())
        for queue in list(listeners):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest to make room for newest
                try:
                    dropped = queue.get_nowait()
                    logger.warning(
                        "broadcaster: queue full (%d) on board=%s, dropped %s",
                        self._queue_size,
                        event.board_id,
                        dropped.type,
                    )
                except asyncio.QueueEmpty:
                    pass
                queue.put_nowait(event)
        return len(listeners)
