"""Reaction routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from retropulse.auth import Actor, get_current_actor
from retropulse.container import Container, get_container
from retropulse.models.reaction import AddReactionRequest, ReactionQuota, ReactionResponse

router = APIRouter(prefix="/api", tags=["reactions"])


@router.post("/cards/{card_id}/reactions", status_code=201)
async def add_reaction(
    card_id: UUID,
    req: AddReactionRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> ReactionResponse:
    """React to a card. Reacting again is a no-op."""
    return await c.reaction_service.add_reaction(str(card_id), req or AddReactionRequest(), actor.identity)


@router.delete("/cards/{card_id}/reactions", status_code=200)
async def remove_reaction(
    card_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> ReactionResponse:
    return await c.reaction_service.remove_reaction(str(card_id), actor.identity)


@router.get("/boards/{board_id}/reactions/quota", status_code=200)
async def reaction_quota(
    board_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> ReactionQuota:
    return await c.reaction_service.get_reaction_quota(str(board_id), actor.identity)
