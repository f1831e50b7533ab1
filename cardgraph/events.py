"""
RetroPulse Card Graph — Event Construction

Factory functions for well-formed board events. Used by the service layer
to describe what it just did, and by tests to build events concisely.
Payloads carry post-mutation counters so snapshots can converge without
recomputing.
"""

from __future__ import annotations

from typing import Any

from cardgraph.types import BoardEvent, LinkType, now_iso

CARD_CREATED = "card.created"
CARD_UPDATED = "card.updated"
CARD_MOVED = "card.moved"
CARD_DELETED = "card.deleted"
CARD_LINKED = "card.linked"
CARD_UNLINKED = "card.unlinked"
CARD_REACTED = "card.reacted"

EVENT_TYPES: set[str] = {
    CARD_CREATED,
    CARD_UPDATED,
    CARD_MOVED,
    CARD_DELETED,
    CARD_LINKED,
    CARD_UNLINKED,
    CARD_REACTED,
}


def make_event(type: str, board_id: str, payload: dict[str, Any], *, timestamp: str | None = None) -> BoardEvent:
    """Wrap a payload. `type` must be one of EVENT_TYPES."""
    if type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {type}")
    return BoardEvent(type=type, board_id=board_id, payload=payload, timestamp=timestamp or now_iso())


def card_created(board_id: str, card: dict[str, Any]) -> BoardEvent:
    return make_event(CARD_CREATED, board_id, {"card": card})


def card_updated(
    board_id: str,
    card_id: str,
    *,
    content: str | None = None,
    aggregated_count: int | None = None,
    updated_at: str | None = None,
) -> BoardEvent:
    payload: dict[str, Any] = {"card_id": card_id, "updated_at": updated_at or now_iso()}
    if content is not None:
        payload["content"] = content
    if aggregated_count is not None:
        payload["aggregated_count"] = aggregated_count
    return make_event(CARD_UPDATED, board_id, payload)


def card_moved(board_id: str, card_id: str, column_id: str) -> BoardEvent:
    return make_event(CARD_MOVED, board_id, {"card_id": card_id, "column_id": column_id})


def card_deleted(
    board_id: str,
    card_id: str,
    *,
    parent_card_id: str | None = None,
    parent_aggregated_count: int | None = None,
    orphaned_ids: list[str] | None = None,
    unlinked_action_ids: list[str] | None = None,
) -> BoardEvent:
    return make_event(
        CARD_DELETED,
        board_id,
        {
            "card_id": card_id,
            "parent_card_id": parent_card_id,
            "parent_aggregated_count": parent_aggregated_count,
            "orphaned_ids": list(orphaned_ids or []),
            "unlinked_action_ids": list(unlinked_action_ids or []),
        },
    )


def _link_payload(
    source_id: str,
    target_id: str,
    link_type: LinkType,
    source_aggregated_count: int | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "source_id": source_id,
        "target_id": target_id,
        "link_type": LinkType(link_type).value,
    }
    if source_aggregated_count is not None:
        payload["source_aggregated_count"] = source_aggregated_count
    return payload


def card_linked(
    board_id: str,
    source_id: str,
    target_id: str,
    link_type: LinkType,
    *,
    source_aggregated_count: int | None = None,
) -> BoardEvent:
    return make_event(CARD_LINKED, board_id, _link_payload(source_id, target_id, link_type, source_aggregated_count))


def card_unlinked(
    board_id: str,
    source_id: str,
    target_id: str,
    link_type: LinkType,
    *,
    source_aggregated_count: int | None = None,
) -> BoardEvent:
    return make_event(CARD_UNLINKED, board_id, _link_payload(source_id, target_id, link_type, source_aggregated_count))


def card_reacted(
    board_id: str,
    card_id: str,
    *,
    delta: int,
    direct_count: int,
    aggregated_count: int,
    parent_card_id: str | None = None,
    parent_aggregated_count: int | None = None,
) -> BoardEvent:
    return make_event(
        CARD_REACTED,
        board_id,
        {
            "card_id": card_id,
            "delta": delta,
            "direct_count": direct_count,
            "aggregated_count": aggregated_count,
            "parent_card_id": parent_card_id,
            "parent_aggregated_count": parent_aggregated_count,
        },
    )
