"""Reaction models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

ReactionType = Literal["thumbs_up"]


class Reaction(BaseModel):
    """Represents a row in the reactions table. One per user per card."""

    card_id: str
    board_id: str
    user_hash: str
    user_alias: str | None = None
    reaction_type: ReactionType = "thumbs_up"
    created_at: datetime


class AddReactionRequest(BaseModel):
    model_config = {"extra": "forbid"}

    reaction_type: ReactionType = "thumbs_up"


class ReactionResponse(BaseModel):
    """What the reaction endpoints return."""

    card_id: str
    reaction_type: ReactionType
    direct_reaction_count: int
    aggregated_reaction_count: int
    parent_card_id: str | None = None
    parent_aggregated_reaction_count: int | None = None


class ReactionQuota(BaseModel):
    current_count: int
    limit: int | None
    can_react: bool
    limit_enabled: bool
