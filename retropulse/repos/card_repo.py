"""
Card storage.

CardStore is the contract the services talk to. MemoryCardStore backs
tests and single-process dev runs; PostgresCardStore lives in
postgres_card_repo.py. Stores hold no relationship logic: every method is
a single-document read or write, or a board-scoped query.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from cardgraph.types import CardType
from retropulse.models.card import Card


class CardStore:
    """
    Abstract card storage interface.
    Implement with Postgres for production, or in-memory for tests.
    """

    async def get(self, card_id: str) -> Card | None:
        """Fetch a card. Returns None if not found."""
        raise NotImplementedError

    async def put(self, card: Card) -> None:
        """Insert or replace a card."""
        raise NotImplementedError

    async def delete(self, card_id: str) -> bool:
        """Delete a card. Returns False if it did not exist."""
        raise NotImplementedError

    async def query(
        self,
        board_id: str,
        *,
        column_id: str | None = None,
        created_by: str | None = None,
        top_level_only: bool = False,
    ) -> list[Card]:
        """Cards on a board, oldest first."""
        raise NotImplementedError

    async def count_by_creator_and_type(self, board_id: str, creator: str, card_type: CardType) -> int:
        raise NotImplementedError

    async def count_by_column(self, board_id: str) -> dict[str, int]:
        """Top-level card count per column."""
        raise NotImplementedError

    async def count_by_board(self, board_id: str) -> int:
        """Top-level card count for the board."""
        raise NotImplementedError

    async def children_of(self, parent_id: str) -> list[Card]:
        """Direct children, oldest first."""
        raise NotImplementedError

    async def actions_linking(self, feedback_id: str) -> list[Card]:
        """Action cards whose linked_feedback_ids contain feedback_id."""
        raise NotImplementedError

    async def update_if_creator(
        self, card_id: str, changes: dict[str, Any], require_creator: str
    ) -> Card | None:
        """
        Apply changes only if the card was created by require_creator.

        Returns:
            The updated card, or None when the condition failed or the card is gone.
        """
        raise NotImplementedError

    async def set_parent(self, child_id: str, parent_id: str | None) -> Card | None:
        raise NotImplementedError

    async def adjust_counts(
        self, card_id: str, *, direct_delta: int = 0, aggregate_delta: int = 0
    ) -> Card | None:
        """Atomically shift the reaction counters. Each is floored at zero."""
        raise NotImplementedError

    async def set_aggregate(self, card_id: str, value: int) -> Card | None:
        raise NotImplementedError

    async def add_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        """Set insert. Adding an id twice leaves one copy."""
        raise NotImplementedError

    async def remove_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        raise NotImplementedError

    async def orphan_children(self, parent_id: str) -> list[str]:
        """Clear parent_card_id on every child of parent_id. Returns the child ids."""
        raise NotImplementedError

    async def unlink_feedback_everywhere(self, board_id: str, feedback_id: str) -> list[str]:
        """Remove feedback_id from every action on the board. Returns the action ids touched."""
        raise NotImplementedError

    async def delete_by_board(self, board_id: str) -> list[str]:
        """Delete every card on a board. Returns the deleted ids."""
        raise NotImplementedError


def _oldest_first(cards: list[Card]) -> list[Card]:
    return sorted(cards, key=lambda c: (c.created_at, c.id))


class MemoryCardStore(CardStore):
    """In-memory storage for testing. Reads and writes are deep copies."""

    def __init__(self) -> None:
        self.cards: dict[str, Card] = {}

    def _copy(self, card_id: str) -> Card | None:
        card = self.cards.get(card_id)
        return card.model_copy(deep=True) if card else None

    def _patch(self, card_id: str, **changes: Any) -> Card | None:
        card = self.cards.get(card_id)
        if card is None:
            return None
        self.cards[card_id] = card.model_copy(update=changes, deep=True)
        return self._copy(card_id)

    async def get(self, card_id: str) -> Card | None:
        return self._copy(card_id)

    async def put(self, card: Card) -> None:
        self.cards[card.id] = card.model_copy(deep=True)

    async def delete(self, card_id: str) -> bool:
        return self.cards.pop(card_id, None) is not None

    async def query(
        self,
        board_id: str,
        *,
        column_id: str | None = None,
        created_by: str | None = None,
        top_level_only: bool = False,
    ) -> list[Card]:
        found = [
            c.model_copy(deep=True)
            for c in self.cards.values()
            if c.board_id == board_id
            and (column_id is None or c.column_id == column_id)
            and (created_by is None or c.created_by_hash == created_by)
            and not (top_level_only and c.parent_card_id is not None)
        ]
        return _oldest_first(found)

    async def count_by_creator_and_type(self, board_id: str, creator: str, card_type: CardType) -> int:
        return sum(
            1
            for c in self.cards.values()
            if c.board_id == board_id and c.created_by_hash == creator and c.card_type == card_type
        )

    async def count_by_column(self, board_id: str) -> dict[str, int]:
        counts = Counter(
            c.column_id for c in self.cards.values() if c.board_id == board_id and c.parent_card_id is None
        )
        return dict(counts)

    async def count_by_board(self, board_id: str) -> int:
        return sum(1 for c in self.cards.values() if c.board_id == board_id and c.parent_card_id is None)

    async def children_of(self, parent_id: str) -> list[Card]:
        return _oldest_first([c.model_copy(deep=True) for c in self.cards.values() if c.parent_card_id == parent_id])

    async def actions_linking(self, feedback_id: str) -> list[Card]:
        return _oldest_first(
            [
                c.model_copy(deep=True)
                for c in self.cards.values()
                if c.card_type == CardType.ACTION and feedback_id in c.linked_feedback_ids
            ]
        )

    async def update_if_creator(
        self, card_id: str, changes: dict[str, Any], require_creator: str
    ) -> Card | None:
        card = self.cards.get(card_id)
        if card is None or card.created_by_hash != require_creator:
            return None
        return self._patch(card_id, **changes)

    async def set_parent(self, child_id: str, parent_id: str | None) -> Card | None:
        return self._patch(child_id, parent_card_id=parent_id)

    async def adjust_counts(
        self, card_id: str, *, direct_delta: int = 0, aggregate_delta: int = 0
    ) -> Card | None:
        card = self.cards.get(card_id)
        if card is None:
            return None
        return self._patch(
            card_id,
            direct_reaction_count=max(0, card.direct_reaction_count + direct_delta),
            aggregated_reaction_count=max(0, card.aggregated_reaction_count + aggregate_delta),
        )

    async def set_aggregate(self, card_id: str, value: int) -> Card | None:
        return self._patch(card_id, aggregated_reaction_count=max(0, value))

    async def add_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        card = self.cards.get(action_id)
        if card is None:
            return None
        if feedback_id in card.linked_feedback_ids:
            return self._copy(action_id)
        return self._patch(action_id, linked_feedback_ids=[*card.linked_feedback_ids, feedback_id])

    async def remove_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        card = self.cards.get(action_id)
        if card is None:
            return None
        return self._patch(
            action_id,
            linked_feedback_ids=[fid for fid in card.linked_feedback_ids if fid != feedback_id],
        )

    async def orphan_children(self, parent_id: str) -> list[str]:
        child_ids = sorted(c.id for c in self.cards.values() if c.parent_card_id == parent_id)
        for child_id in child_ids:
            self._patch(child_id, parent_card_id=None)
        return child_ids

    async def unlink_feedback_everywhere(self, board_id: str, feedback_id: str) -> list[str]:
        touched = sorted(
            c.id
            for c in self.cards.values()
            if c.board_id == board_id and feedback_id in c.linked_feedback_ids
        )
        for action_id in touched:
            await self.remove_linked_feedback(action_id, feedback_id)
        return touched

    async def delete_by_board(self, board_id: str) -> list[str]:
        ids = sorted(c.id for c in self.cards.values() if c.board_id == board_id)
        for card_id in ids:
            del self.cards[card_id]
        return ids
