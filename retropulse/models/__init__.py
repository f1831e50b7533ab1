"""
Pydantic models for RetroPulse.

All data shapes defined here. No imports from db, repos, or routes.
"""

from retropulse.models.board import Board, Column
from retropulse.models.card import (
    AggregateRepair,
    Card,
    CardQuota,
    CardsResponse,
    CardWithRelationships,
    ChildCard,
    CreateCardRequest,
    LinkCardsRequest,
    LinkedFeedbackCard,
    MoveCardRequest,
    RepairResponse,
    UpdateCardRequest,
)
from retropulse.models.reaction import AddReactionRequest, Reaction, ReactionQuota, ReactionResponse

__all__ = [
    # Board models
    "Board",
    "Column",
    # Card models
    "Card",
    "CardWithRelationships",
    "ChildCard",
    "LinkedFeedbackCard",
    "CardsResponse",
    "CardQuota",
    "CreateCardRequest",
    "UpdateCardRequest",
    "MoveCardRequest",
    "LinkCardsRequest",
    "AggregateRepair",
    "RepairResponse",
    # Reaction models
    "Reaction",
    "AddReactionRequest",
    "ReactionResponse",
    "ReactionQuota",
]
