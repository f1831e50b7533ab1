"""
RetroPulse Card Graph — Board Snapshot

An id-keyed read model of one board's cards. The server builds one from
store records before running the rule table; clients keep one current by
applying broadcast events, and the drag-drop validator reads it.

apply_event() is the only way a client snapshot changes. Counters are taken
from event payloads when present so that every client converges on the
server's numbers instead of re-deriving them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from cardgraph import events as ev
from cardgraph.types import BoardEvent, CardNode, LinkType, SortDirection, SortMode


class BoardSnapshot:
    """Mutable arena of CardNodes for a single board."""

    def __init__(self, cards: Iterable[CardNode] = (), *, board_id: str | None = None) -> None:
        self.board_id = board_id
        self._cards: dict[str, CardNode] = {}
        for card in cards:
            self._cards[card.id] = card

    @classmethod
    def from_cards(cls, records: Iterable[Any], *, board_id: str | None = None) -> BoardSnapshot:
        """Build from CardNodes or any records exposing the card attributes."""
        nodes = [r if isinstance(r, CardNode) else CardNode.from_record(r) for r in records]
        return cls(nodes, board_id=board_id)

    # -- lookups -------------------------------------------------------------

    def get(self, card_id: str | None) -> CardNode | None:
        if card_id is None:
            return None
        return self._cards.get(card_id)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[CardNode]:
        return iter(list(self._cards.values()))

    def parent_of(self, card_id: str) -> str | None:
        card = self._cards.get(card_id)
        return card.parent_card_id if card else None

    def has_parent(self, card_id: str) -> bool:
        return self.parent_of(card_id) is not None

    def children_of(self, card_id: str) -> list[CardNode]:
        """Direct children, oldest first."""
        children = [c for c in self._cards.values() if c.parent_card_id == card_id]
        return sorted(children, key=lambda c: (c.created_at, c.id))

    def has_children(self, card_id: str) -> bool:
        return any(c.parent_card_id == card_id for c in self._cards.values())

    # -- mutation ------------------------------------------------------------

    def upsert(self, card: CardNode) -> None:
        self._cards[card.id] = card

    def remove(self, card_id: str) -> CardNode | None:
        return self._cards.pop(card_id, None)

    # -- ordering ------------------------------------------------------------

    def sorted_cards(
        self,
        mode: SortMode = "recency",
        direction: SortDirection = "desc",
        *,
        top_level_only: bool = True,
    ) -> list[CardNode]:
        """
        Deterministic list ordering.

        recency: newest first (desc). popularity: highest aggregated count
        first (desc). Ties always break on id so two clients holding the same
        snapshot render the same order.
        """
        cards = [c for c in self._cards.values() if not (top_level_only and c.parent_card_id)]
        if mode == "recency":
            ordered = sorted(cards, key=lambda c: (c.created_at, c.id))
        elif mode == "popularity":
            ordered = sorted(cards, key=lambda c: (c.aggregated_reaction_count, c.id))
        else:
            raise ValueError(f"Unknown sort mode: {mode!r}")
        if direction == "desc":
            ordered.reverse()
        return ordered

    def column_cards(self, column_id: str) -> list[CardNode]:
        """Top-level cards of one column, oldest first."""
        cards = [c for c in self._cards.values() if c.column_id == column_id and not c.parent_card_id]
        return sorted(cards, key=lambda c: (c.created_at, c.id))

    # -- event application ---------------------------------------------------

    def apply_event(self, event: BoardEvent | dict[str, Any]) -> bool:
        """
        Fold one broadcast event into the snapshot.
        Returns False for unknown events and events addressed to another board.
        """
        if isinstance(event, dict):
            event = BoardEvent.from_dict(event)
        if self.board_id is not None and event.board_id != self.board_id:
            return False
        handler = _HANDLERS.get(event.type)
        if handler is None:
            return False
        handler(self, event.payload)
        return True


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------


def _on_created(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    snap.upsert(CardNode.from_dict(payload["card"]))


def _on_updated(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    card = snap.get(payload["card_id"])
    if card is not None and payload.get("aggregated_count") is not None:
        card.aggregated_reaction_count = payload["aggregated_count"]


def _on_moved(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    card = snap.get(payload["card_id"])
    if card is not None:
        card.column_id = payload["column_id"]


def _on_deleted(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    card_id = payload["card_id"]
    removed = snap.remove(card_id)

    parent = snap.get(payload.get("parent_card_id"))
    if parent is not None:
        if payload.get("parent_aggregated_count") is not None:
            parent.aggregated_reaction_count = payload["parent_aggregated_count"]
        elif removed is not None:
            parent.aggregated_reaction_count = max(
                parent.aggregated_reaction_count - removed.direct_reaction_count, 0
            )

    orphaned = payload.get("orphaned_ids")
    if orphaned is None:
        orphaned = [c.id for c in snap if c.parent_card_id == card_id]
    for child_id in orphaned:
        child = snap.get(child_id)
        if child is not None:
            child.parent_card_id = None

    for action in snap:
        if card_id in action.linked_feedback_ids:
            action.linked_feedback_ids = [i for i in action.linked_feedback_ids if i != card_id]


def _on_linked(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    source = snap.get(payload["source_id"])
    target = snap.get(payload["target_id"])
    if source is None or target is None:
        return
    if payload["link_type"] == LinkType.PARENT_OF.value:
        target.parent_card_id = source.id
        if payload.get("source_aggregated_count") is not None:
            source.aggregated_reaction_count = payload["source_aggregated_count"]
        else:
            source.aggregated_reaction_count += target.direct_reaction_count
    elif target.id not in source.linked_feedback_ids:
        source.linked_feedback_ids.append(target.id)


def _on_unlinked(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    source = snap.get(payload["source_id"])
    target = snap.get(payload["target_id"])
    if source is None:
        return
    if payload["link_type"] == LinkType.PARENT_OF.value:
        if target is not None and target.parent_card_id == source.id:
            target.parent_card_id = None
            if payload.get("source_aggregated_count") is None:
                source.aggregated_reaction_count = max(
                    source.aggregated_reaction_count - target.direct_reaction_count, 0
                )
        if payload.get("source_aggregated_count") is not None:
            source.aggregated_reaction_count = payload["source_aggregated_count"]
    else:
        source.linked_feedback_ids = [i for i in source.linked_feedback_ids if i != payload["target_id"]]


def _on_reacted(snap: BoardSnapshot, payload: dict[str, Any]) -> None:
    card = snap.get(payload["card_id"])
    if card is not None:
        card.direct_reaction_count = payload["direct_count"]
        card.aggregated_reaction_count = payload["aggregated_count"]
    parent = snap.get(payload.get("parent_card_id"))
    if parent is not None and payload.get("parent_aggregated_count") is not None:
        parent.aggregated_reaction_count = payload["parent_aggregated_count"]


_HANDLERS = {
    ev.CARD_CREATED: _on_created,
    ev.CARD_UPDATED: _on_updated,
    ev.CARD_MOVED: _on_moved,
    ev.CARD_DELETED: _on_deleted,
    ev.CARD_LINKED: _on_linked,
    ev.CARD_UNLINKED: _on_unlinked,
    ev.CARD_REACTED: _on_reacted,
}
