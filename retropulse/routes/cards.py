"""Card routes — create, read, edit, move, delete, link, unlink, quota, repair."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from retropulse.auth import Actor, get_current_actor
from retropulse.container import Container, get_container
from retropulse.models.card import (
    AggregateRepair,
    Card,
    CardQuota,
    CardsResponse,
    CardWithRelationships,
    CreateCardRequest,
    LinkCardsRequest,
    MoveCardRequest,
    RepairResponse,
    UpdateCardRequest,
)

router = APIRouter(prefix="/api", tags=["cards"])


# -- board-scoped --


@router.get("/boards/{board_id}/cards", status_code=200)
async def list_cards(
    board_id: UUID,
    column_id: str | None = None,
    created_by: str | None = None,
    include_relationships: bool = True,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> CardsResponse:
    """Top-level cards on a board with their children and linked feedback embedded."""
    return await c.card_service.get_cards(
        str(board_id),
        column_id=column_id,
        created_by=created_by,
        include_relationships=include_relationships,
    )


@router.post("/boards/{board_id}/cards", status_code=201)
async def create_card(
    board_id: UUID,
    req: CreateCardRequest,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> Card:
    return await c.card_service.create_card(str(board_id), req, actor.identity)


@router.get("/boards/{board_id}/cards/quota", status_code=200)
async def card_quota(
    board_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> CardQuota:
    return await c.card_service.get_card_quota(str(board_id), actor.identity)


@router.post("/boards/{board_id}/cards/repair", status_code=200)
async def repair_aggregates(
    board_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> RepairResponse:
    """Recompute drifted aggregate counts. Board admins only."""
    drift = await c.card_service.repair_aggregates(str(board_id), actor.identity, actor.is_admin_override)
    return RepairResponse(
        repaired=[AggregateRepair(card_id=d.card_id, recorded=d.recorded, expected=d.expected) for d in drift]
    )


# -- card-scoped --


@router.get("/cards/{card_id}", status_code=200)
async def get_card(
    card_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> CardWithRelationships:
    return await c.card_service.get_card(str(card_id))


@router.put("/cards/{card_id}", status_code=200)
async def update_card(
    card_id: UUID,
    req: UpdateCardRequest,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> Card:
    """Edit content. Creator only."""
    return await c.card_service.update_card(str(card_id), req, actor.identity)


@router.patch("/cards/{card_id}/column", status_code=200)
async def move_card(
    card_id: UUID,
    req: MoveCardRequest,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> Card:
    """Move to another column. Creator only; relationships are untouched."""
    return await c.card_service.move_card(str(card_id), req, actor.identity)


@router.delete("/cards/{card_id}", status_code=204)
async def delete_card(
    card_id: UUID,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> Response:
    await c.card_service.delete_card(str(card_id), actor.identity, actor.is_admin_override)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/cards/{card_id}/link", status_code=201)
async def link_cards(
    card_id: UUID,
    req: LinkCardsRequest,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> CardWithRelationships:
    """Link the path card (source) to req.target_card_id."""
    return await c.card_service.link_cards(str(card_id), req, actor.identity, actor.is_admin_override)


@router.post("/cards/{card_id}/unlink", status_code=200)
async def unlink_cards(
    card_id: UUID,
    req: LinkCardsRequest,
    actor: Actor = Depends(get_current_actor),
    c: Container = Depends(get_container),
) -> CardWithRelationships:
    return await c.card_service.unlink_cards(str(card_id), req, actor.identity, actor.is_admin_override)
