"""Card models for retrospective boards."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from cardgraph.types import CardType, LinkType


class Card(BaseModel):
    """Core card model. Represents a row in the cards table."""

    id: str
    board_id: str
    column_id: str
    content: str
    card_type: CardType
    is_anonymous: bool = False
    created_by_hash: str
    created_by_alias: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    direct_reaction_count: int = 0
    aggregated_reaction_count: int = 0
    parent_card_id: str | None = None
    linked_feedback_ids: list[str] = Field(default_factory=list)

    def event_dict(self) -> dict[str, Any]:
        """JSON-safe shape used in card.created payloads."""
        return self.model_dump(mode="json")


class CreateCardRequest(BaseModel):
    """What the client sends to create a card."""

    model_config = {"extra": "forbid"}

    column_id: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=5000)
    card_type: CardType
    is_anonymous: bool = False


class UpdateCardRequest(BaseModel):
    """What the client sends to edit a card's content."""

    model_config = {"extra": "forbid"}

    content: str = Field(min_length=1, max_length=5000)


class MoveCardRequest(BaseModel):
    """What the client sends to move a card to another column."""

    model_config = {"extra": "forbid"}

    column_id: str = Field(min_length=1, max_length=100)


class LinkCardsRequest(BaseModel):
    """Link or unlink body. The path card is the source."""

    model_config = {"extra": "forbid"}

    target_card_id: UUID
    link_type: LinkType


class ChildCard(BaseModel):
    """Child card embedded in its parent's response."""

    id: str
    content: str
    is_anonymous: bool
    created_by_alias: str | None
    created_at: datetime
    direct_reaction_count: int
    aggregated_reaction_count: int

    @classmethod
    def from_model(cls, card: Card) -> ChildCard:
        return cls(
            id=card.id,
            content=card.content,
            is_anonymous=card.is_anonymous,
            created_by_alias=card.created_by_alias,
            created_at=card.created_at,
            direct_reaction_count=card.direct_reaction_count,
            aggregated_reaction_count=card.aggregated_reaction_count,
        )


class LinkedFeedbackCard(BaseModel):
    """Feedback card embedded in an action card's response."""

    id: str
    content: str
    created_by_alias: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, card: Card) -> LinkedFeedbackCard:
        return cls(
            id=card.id,
            content=card.content,
            created_by_alias=card.created_by_alias,
            created_at=card.created_at,
        )


class CardWithRelationships(Card):
    """
    Materialized read copy: the card plus one level of relationships.
    Children are never expanded further.
    """

    children: list[ChildCard] = Field(default_factory=list)
    linked_feedback_cards: list[LinkedFeedbackCard] = Field(default_factory=list)

    @classmethod
    def from_model(
        cls,
        card: Card,
        children: list[Card] | None = None,
        linked: list[Card] | None = None,
    ) -> CardWithRelationships:
        return cls(
            **card.model_dump(),
            children=[ChildCard.from_model(c) for c in children or []],
            linked_feedback_cards=[LinkedFeedbackCard.from_model(c) for c in linked or []],
        )


class CardsResponse(BaseModel):
    """GET /api/boards/{id}/cards response."""

    cards: list[CardWithRelationships]
    total_count: int
    cards_by_column: dict[str, int]


class CardQuota(BaseModel):
    """Feedback card creation quota for one user on one board."""

    current_count: int
    limit: int | None
    can_create: bool
    limit_enabled: bool


class AggregateRepair(BaseModel):
    """One aggregate corrected by the repair pass."""

    card_id: str
    recorded: int
    expected: int


class RepairResponse(BaseModel):
    repaired: list[AggregateRepair]
