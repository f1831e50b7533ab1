"""
WebSocket endpoint for live board updates.

Accepts connections at /ws/boards/{board_id}, hydrates the client with the
board's current cards, then forwards every BoardEvent published for that
board. Clients fold the events into their own BoardSnapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from cardgraph.types import BoardEvent, CardNode
from retropulse.auth import identity_from_session
from retropulse.container import Container, get_container

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


def _identity_from_websocket(websocket: WebSocket) -> str | None:
    """Hashed identity from the session cookie, or None if missing or invalid."""
    session = websocket.cookies.get("session")
    if not session:
        return None
    try:
        return identity_from_session(session)
    except HTTPException:
        return None


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue[BoardEvent]) -> None:
    while True:
        event = await queue.get()
        await websocket.send_text(json.dumps(event.to_dict()))


async def _drain_client(websocket: WebSocket) -> None:
    """Read until the client goes away. The stream is server → client only."""
    while True:
        raw = await websocket.receive_text()
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("ws: malformed message from client: %r", raw[:200])
            continue
        if not isinstance(msg, dict):
            logger.warning("ws: ignoring non-object message from client: %r", raw[:200])
            continue
        if msg.get("type") == "ping":
            await websocket.send_text(json.dumps({"type": "pong"}))


@router.websocket("/ws/boards/{board_id}")
async def board_websocket(websocket: WebSocket, board_id: UUID, c: Container = Depends(get_container)) -> None:
    """
    Stream board events to the client.

    Protocol:
      Server → Client:  {"type": "snapshot", "board_id": ..., "cards": [CardNode dict, ...]}
                        then BoardEvent dicts ({"type": "card.*", "board_id", "payload", "timestamp"})
      Client → Server:  {"type": "ping"}  → {"type": "pong"}
    """
    board_key = str(board_id)
    identity = _identity_from_websocket(websocket)
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if await c.boards.get(board_key) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    # Subscribe before reading cards so nothing published in between is lost.
    queue = c.broadcaster.subscribe(board_key)
    logger.info("ws: accepted board=%s user=%s", board_key, identity[:8])

    try:
        cards = await c.cards.query(board_key)
        await websocket.send_text(
            json.dumps(
                {
                    "type": "snapshot",
                    "board_id": board_key,
                    "cards": [CardNode.from_record(card).to_dict() for card in cards],
                }
            )
        )

        sender = asyncio.create_task(_forward_events(websocket, queue))
        receiver = asyncio.create_task(_drain_client(websocket))
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.exception("ws: stream failed for board=%s", board_key, exc_info=exc)
    except WebSocketDisconnect:
        pass
    finally:
        c.broadcaster.unsubscribe(board_key, queue)
        logger.info("ws: closed board=%s user=%s", board_key, identity[:8])
