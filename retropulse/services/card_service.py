"""
Card service — the single writer for card records.

Every mutation that touches more than one card (link, unlink, delete,
create-with-quota, repair) runs under the board's lock, asks the shared
rule table in cardgraph.rules before changing structure, keeps aggregate
counts current with deltas, and publishes one BoardEvent describing the
result.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import NoReturn

from cardgraph import events
from cardgraph.aggregation import find_drift
from cardgraph.rules import validate_link
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import AggregateDrift, CardType, LinkType
from retropulse.errors import (
    BoardClosed,
    BoardNotFound,
    CardNotFound,
    ColumnNotFound,
    Forbidden,
    ValidationError,
    error_for_verdict,
)
from retropulse.models.board import Board
from retropulse.models.card import (
    Card,
    CardQuota,
    CardsResponse,
    CardWithRelationships,
    CreateCardRequest,
    LinkCardsRequest,
    MoveCardRequest,
    UpdateCardRequest,
)
from retropulse.repos.board_repo import BoardStore
from retropulse.repos.card_repo import CardStore
from retropulse.repos.reaction_repo import ReactionStore
from retropulse.services.board_locks import BoardLocks
from retropulse.services.broadcaster import EventBroadcaster
from retropulse.services.quota import QuotaGate

logger = logging.getLogger(__name__)


def _short(identity: str) -> str:
    return identity[:8]


def _relate(cards: list[Card], board_cards: list[Card]) -> list[CardWithRelationships]:
    """
    Embed children and linked feedback from an already-loaded board.

    board_cards must be oldest first; children keep that order.
    """
    by_id = {c.id: c for c in board_cards}
    children: dict[str, list[Card]] = {}
    for c in board_cards:
        if c.parent_card_id is not None:
            children.setdefault(c.parent_card_id, []).append(c)

    related = []
    for card in cards:
        linked = [by_id[fid] for fid in card.linked_feedback_ids if fid in by_id]
        own_children = children.get(card.id, []) if card.card_type == CardType.FEEDBACK else []
        related.append(CardWithRelationships.from_model(card, children=own_children, linked=linked))
    return related


class CardService:
    """Card lifecycle, relationships, and aggregate maintenance."""

    def __init__(
        self,
        cards: CardStore,
        boards: BoardStore,
        reactions: ReactionStore,
        quota: QuotaGate,
        broadcaster: EventBroadcaster,
        locks: BoardLocks,
    ) -> None:
        self.cards = cards
        self.boards = boards
        self.reactions = reactions
        self.quota = quota
        self.broadcaster = broadcaster
        self.locks = locks

    # -- helpers --

    async def _board(self, board_id: str) -> Board:
        board = await self.boards.get(board_id)
        if board is None:
            raise BoardNotFound("Board not found")
        return board

    async def _open_board(self, board_id: str) -> Board:
        board = await self._board(board_id)
        if board.is_closed:
            logger.warning("cards: rejected write on closed board=%s", board_id)
            raise BoardClosed("Board is closed")
        return board

    async def _card(self, card_id: str, label: str = "Card") -> Card:
        card = await self.cards.get(card_id)
        if card is None:
            raise CardNotFound(f"{label} not found")
        return card

    async def _snapshot(self, board_id: str) -> BoardSnapshot:
        return BoardSnapshot.from_cards(await self.cards.query(board_id), board_id=board_id)

    async def _with_relationships(self, card: Card) -> CardWithRelationships:
        """One card with its relationships, in at most one query."""
        if card.card_type == CardType.FEEDBACK:
            return CardWithRelationships.from_model(card, children=await self.cards.children_of(card.id))
        if not card.linked_feedback_ids:
            return CardWithRelationships.from_model(card)
        return _relate([card], await self.cards.query(card.board_id))[0]

    def _authorize_relationship(self, source: Card, board: Board, identity: str, is_admin_override: bool) -> None:
        if source.created_by_hash == identity or board.is_admin(identity) or is_admin_override:
            return
        logger.warning("cards: relationship change forbidden card=%s user=%s", source.id, _short(identity))
        raise Forbidden("Only the card creator or board admin can change card relationships")

    # -- create / read --

    async def create_card(self, board_id: str, req: CreateCardRequest, identity: str) -> Card:
        """
        Create a standalone card on an open board.

        Feedback cards count against the board's per-user card quota.
        Anonymous cards carry no alias; the creator hash is always stored.
        """
        logger.info(
            "cards: create board=%s column=%s type=%s user=%s",
            board_id,
            req.column_id,
            req.card_type.value,
            _short(identity),
        )
        async with self.locks.for_board(board_id):
            board = await self._open_board(board_id)
            if not board.has_column(req.column_id):
                raise ColumnNotFound("Column not found")
            if req.card_type == CardType.FEEDBACK:
                await self.quota.check_and_reserve(board, identity, "card")

            alias = None if req.is_anonymous else await self.boards.find_alias(board_id, identity)
            card = Card(
                id=str(uuid.uuid4()),
                board_id=board_id,
                column_id=req.column_id,
                content=req.content,
                card_type=req.card_type,
                is_anonymous=req.is_anonymous,
                created_by_hash=identity,
                created_by_alias=alias,
                created_at=datetime.now(UTC),
            )
            await self.cards.put(card)
            self.broadcaster.publish(events.card_created(board_id, card.event_dict()))

        logger.info("cards: created card=%s board=%s", card.id, board_id)
        return card

    async def get_card(self, card_id: str) -> CardWithRelationships:
        card = await self._card(card_id)
        return await self._with_relationships(card)

    async def get_cards(
        self,
        board_id: str,
        *,
        column_id: str | None = None,
        created_by: str | None = None,
        include_relationships: bool = True,
    ) -> CardsResponse:
        """
        Top-level cards on a board, newest first.

        Children are embedded under their parent (oldest first) rather than
        listed at the top level. total_count and cards_by_column count
        top-level cards for the whole board, ignoring the filters.
        """
        await self._board(board_id)
        top_level = await self.cards.query(
            board_id, column_id=column_id, created_by=created_by, top_level_only=True
        )
        top_level.sort(key=lambda c: (c.created_at, c.id), reverse=True)

        if include_relationships:
            cards = _relate(top_level, await self.cards.query(board_id))
        else:
            cards = [CardWithRelationships.from_model(card) for card in top_level]

        return CardsResponse(
            cards=cards,
            total_count=await self.cards.count_by_board(board_id),
            cards_by_column=await self.cards.count_by_column(board_id),
        )

    async def get_card_quota(self, board_id: str, identity: str) -> CardQuota:
        board = await self._board(board_id)
        return await self.quota.card_quota(board, identity)

    # -- single-card writes --

    async def update_card(self, card_id: str, req: UpdateCardRequest, identity: str) -> Card:
        existing = await self._card(card_id)
        await self._open_board(existing.board_id)

        updated = await self.cards.update_if_creator(
            card_id,
            {"content": req.content, "updated_at": datetime.now(UTC)},
            require_creator=identity,
        )
        if updated is None:
            await self._raise_conditional_failure(card_id, identity, "update")

        self.broadcaster.publish(
            events.card_updated(
                updated.board_id,
                updated.id,
                content=updated.content,
                updated_at=updated.updated_at.isoformat() if updated.updated_at else None,
            )
        )
        logger.info("cards: updated card=%s", card_id)
        return updated

    async def move_card(self, card_id: str, req: MoveCardRequest, identity: str) -> Card:
        existing = await self._card(card_id)
        board = await self._open_board(existing.board_id)
        if not board.has_column(req.column_id):
            logger.warning("cards: move to unknown column=%s card=%s", req.column_id, card_id)
            raise ColumnNotFound("Column not found")

        updated = await self.cards.update_if_creator(
            card_id,
            {"column_id": req.column_id, "updated_at": datetime.now(UTC)},
            require_creator=identity,
        )
        if updated is None:
            await self._raise_conditional_failure(card_id, identity, "move")

        self.broadcaster.publish(events.card_moved(updated.board_id, updated.id, updated.column_id))
        logger.info("cards: moved card=%s column=%s", card_id, req.column_id)
        return updated

    async def _raise_conditional_failure(self, card_id: str, identity: str, verb: str) -> NoReturn:
        if await self.cards.get(card_id) is None:
            raise CardNotFound("Card not found")
        logger.warning("cards: %s forbidden card=%s user=%s", verb, card_id, _short(identity))
        raise Forbidden(f"Only the card creator can {verb} this card")

    # -- delete cascade --

    async def delete_card(self, card_id: str, identity: str, is_admin_override: bool = False) -> None:
        """
        Delete a card and repair everything that pointed at it.

        The parent's aggregate loses this card's direct count, children
        are orphaned (they keep their own counts), actions stop linking to
        it, and its reactions are dropped. Admin override skips both the
        creator check and the closed-board check.
        """
        logger.info(
            "cards: delete card=%s user=%s admin_override=%s", card_id, _short(identity), is_admin_override
        )
        existing = await self._card(card_id)
        if not is_admin_override and existing.created_by_hash != identity:
            logger.warning("cards: delete forbidden card=%s user=%s", card_id, _short(identity))
            raise Forbidden("Only the card creator can delete this card")

        board_id = existing.board_id
        async with self.locks.for_board(board_id):
            if not is_admin_override:
                await self._open_board(board_id)

            # Re-read under the lock; counts may have moved since the first read.
            card = await self.cards.get(card_id)
            if card is None:
                raise CardNotFound("Card not found")

            parent_aggregate = None
            if card.parent_card_id is not None:
                parent = await self.cards.adjust_counts(
                    card.parent_card_id, aggregate_delta=-card.direct_reaction_count
                )
                parent_aggregate = parent.aggregated_reaction_count if parent else None

            orphaned = await self.cards.orphan_children(card_id)
            unlinked: list[str] = []
            if card.card_type == CardType.FEEDBACK:
                unlinked = await self.cards.unlink_feedback_everywhere(board_id, card_id)
            await self.cards.delete(card_id)
            await self.reactions.delete_for_card(card_id)

            self.broadcaster.publish(
                events.card_deleted(
                    board_id,
                    card_id,
                    parent_card_id=card.parent_card_id,
                    parent_aggregated_count=parent_aggregate,
                    orphaned_ids=orphaned,
                    unlinked_action_ids=unlinked,
                )
            )

        logger.info(
            "cards: deleted card=%s board=%s orphaned=%d unlinked=%d", card_id, board_id, len(orphaned), len(unlinked)
        )

    async def delete_cards_for_board(self, board_id: str) -> int:
        """
        Drop every card and reaction on a board.

        Boards are owned by a separate board service, which calls this when
        it deletes a board. No route here exposes it.

        Returns:
            Number of cards deleted
        """
        async with self.locks.for_board(board_id):
            for card in await self.cards.query(board_id):
                await self.reactions.delete_for_card(card.id)
            deleted = await self.cards.delete_by_board(board_id)
        self.locks.discard(board_id)
        logger.info("cards: deleted %d cards for board=%s", len(deleted), board_id)
        return len(deleted)

    # -- relationships --

    async def _load_pair(
        self, source_id: str, target_id: str, identity: str, is_admin_override: bool
    ) -> tuple[Card, Card, Board]:
        source = await self._card(source_id, "Source card")
        target = await self._card(target_id, "Target card")
        board = await self._open_board(source.board_id)
        self._authorize_relationship(source, board, identity, is_admin_override)
        if source.board_id != target.board_id:
            raise ValidationError("Cards must be on the same board")
        return source, target, board

    async def link_cards(
        self,
        source_id: str,
        req: LinkCardsRequest,
        identity: str,
        is_admin_override: bool = False,
    ) -> CardWithRelationships:
        """
        Link two cards.

        parent_of: the target becomes a child of the source and the
        source's aggregate grows by the target's current direct count.
        linked_to: the target feedback id joins the source action's set.

        Returns:
            The source card with its refreshed relationships
        """
        target_id = str(req.target_card_id)
        logger.info(
            "cards: link source=%s target=%s type=%s user=%s",
            source_id,
            target_id,
            req.link_type.value,
            _short(identity),
        )
        board_id = (await self._card(source_id, "Source card")).board_id
        async with self.locks.for_board(board_id):
            source, target, board = await self._load_pair(source_id, target_id, identity, is_admin_override)

            verdict = validate_link(await self._snapshot(board.id), source.id, target.id, req.link_type)
            if not verdict:
                logger.warning("cards: link rejected %s: %s", verdict.code, verdict.reason)
                raise error_for_verdict(verdict)

            source_aggregate = None
            if req.link_type == LinkType.PARENT_OF:
                await self.cards.set_parent(target.id, source.id)
                updated = await self.cards.adjust_counts(source.id, aggregate_delta=target.direct_reaction_count)
                source_aggregate = updated.aggregated_reaction_count if updated else None
            else:
                await self.cards.add_linked_feedback(source.id, target.id)

            self.broadcaster.publish(
                events.card_linked(
                    board.id, source.id, target.id, req.link_type, source_aggregated_count=source_aggregate
                )
            )

        logger.info("cards: linked source=%s target=%s", source_id, target_id)
        return await self.get_card(source_id)

    async def unlink_cards(
        self,
        source_id: str,
        req: LinkCardsRequest,
        identity: str,
        is_admin_override: bool = False,
    ) -> CardWithRelationships:
        """
        Undo a link. parent_of requires the target to be the source's child;
        linked_to removal is unconditional.
        """
        target_id = str(req.target_card_id)
        logger.info(
            "cards: unlink source=%s target=%s type=%s user=%s",
            source_id,
            target_id,
            req.link_type.value,
            _short(identity),
        )
        board_id = (await self._card(source_id, "Source card")).board_id
        async with self.locks.for_board(board_id):
            source, target, board = await self._load_pair(source_id, target_id, identity, is_admin_override)

            source_aggregate = None
            if req.link_type == LinkType.PARENT_OF:
                if target.parent_card_id != source.id:
                    raise ValidationError("Target card is not a child of source card")
                await self.cards.set_parent(target.id, None)
                updated = await self.cards.adjust_counts(source.id, aggregate_delta=-target.direct_reaction_count)
                source_aggregate = updated.aggregated_reaction_count if updated else None
            else:
                await self.cards.remove_linked_feedback(source.id, target.id)

            self.broadcaster.publish(
                events.card_unlinked(
                    board.id, source.id, target.id, req.link_type, source_aggregated_count=source_aggregate
                )
            )

        logger.info("cards: unlinked source=%s target=%s", source_id, target_id)
        return await self.get_card(source_id)

    # -- repair --

    async def repair_aggregates(
        self, board_id: str, identity: str, is_admin_override: bool = False
    ) -> list[AggregateDrift]:
        """
        Recompute every aggregate on the board from children's direct counts
        and write back the ones that drifted.

        Returns:
            The drift found (recorded vs expected), one entry per repaired card
        """
        board = await self._board(board_id)
        if not (board.is_admin(identity) or is_admin_override):
            logger.warning("cards: repair forbidden board=%s user=%s", board_id, _short(identity))
            raise Forbidden("Only a board admin can repair aggregates")

        async with self.locks.for_board(board_id):
            drift = find_drift(await self._snapshot(board_id))
            for item in drift:
                await self.cards.set_aggregate(item.card_id, item.expected)
                self.broadcaster.publish(events.card_updated(board_id, item.card_id, aggregated_count=item.expected))

        if drift:
            logger.warning("cards: repaired %d drifted aggregates on board=%s", len(drift), board_id)
        else:
            logger.info("cards: no aggregate drift on board=%s", board_id)
        return drift
