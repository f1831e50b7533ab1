"""Reactions — one per user per card, cascading into the parent's aggregate."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from cardgraph import events
from retropulse.errors import BoardClosed, BoardNotFound, CardNotFound, ReactionNotFound
from retropulse.models.board import Board
from retropulse.models.card import Card
from retropulse.models.reaction import AddReactionRequest, Reaction, ReactionQuota, ReactionResponse
from retropulse.repos.board_repo import BoardStore
from retropulse.repos.card_repo import CardStore
from retropulse.repos.reaction_repo import ReactionStore
from retropulse.services.board_locks import BoardLocks
from retropulse.services.broadcaster import EventBroadcaster
from retropulse.services.quota import QuotaGate

logger = logging.getLogger(__name__)


class ReactionService:
    """Adds and removes reactions, keeping direct and aggregated counts in step."""

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

    async def _card_and_open_board(self, card_id: str) -> tuple[Card, Board]:
        card = await self.cards.get(card_id)
        if card is None:
            raise CardNotFound("Card not found")
        board = await self.boards.get(card.board_id)
        if board is None:
            raise BoardNotFound("Board not found")
        if board.is_closed:
            logger.warning("reactions: rejected on closed board=%s", board.id)
            raise BoardClosed("Board is closed")
        return card, board

    async def _apply(self, card_id: str, delta: int) -> ReactionResponse:
        """
        Shift the card's direct and aggregated counts by delta, and the
        parent's aggregate when the card is a child. Publishes card.reacted.
        """
        updated = await self.cards.adjust_counts(card_id, direct_delta=delta, aggregate_delta=delta)
        if updated is None:
            raise CardNotFound("Card not found")

        parent_aggregate = None
        if updated.parent_card_id is not None:
            parent = await self.cards.adjust_counts(updated.parent_card_id, aggregate_delta=delta)
            parent_aggregate = parent.aggregated_reaction_count if parent else None

        self.broadcaster.publish(
            events.card_reacted(
                updated.board_id,
                updated.id,
                delta=delta,
                direct_count=updated.direct_reaction_count,
                aggregated_count=updated.aggregated_reaction_count,
                parent_card_id=updated.parent_card_id,
                parent_aggregated_count=parent_aggregate,
            )
        )
        return ReactionResponse(
            card_id=updated.id,
            reaction_type="thumbs_up",
            direct_reaction_count=updated.direct_reaction_count,
            aggregated_reaction_count=updated.aggregated_reaction_count,
            parent_card_id=updated.parent_card_id,
            parent_aggregated_reaction_count=parent_aggregate,
        )

    async def add_reaction(self, card_id: str, req: AddReactionRequest, identity: str) -> ReactionResponse:
        """
        React to a card. Reacting twice is a no-op: counts stay put and no
        event is published.

        Raises:
            CardNotFound, BoardNotFound, BoardClosed, ReactionLimitReached
        """
        _, board = await self._card_and_open_board(card_id)
        async with self.locks.for_board(board.id):
            # The card may have been deleted while this call waited for the lock.
            if await self.cards.get(card_id) is None:
                raise CardNotFound("Card not found")
            if await self.reactions.get(card_id, identity) is not None:
                return await self._current(card_id)

            await self.quota.check_and_reserve(board, identity, "reaction")
            alias = await self.boards.find_alias(board.id, identity)
            added = await self.reactions.add(
                Reaction(
                    card_id=card_id,
                    board_id=board.id,
                    user_hash=identity,
                    user_alias=alias,
                    reaction_type=req.reaction_type,
                    created_at=datetime.now(UTC),
                )
            )
            if not added:
                # Lost a race with another process; the ledger already has it.
                return await self._current(card_id)
            result = await self._apply(card_id, +1)

        logger.info("reactions: added card=%s user=%s direct=%d", card_id, identity[:8], result.direct_reaction_count)
        return result

    async def remove_reaction(self, card_id: str, identity: str) -> ReactionResponse:
        _, board = await self._card_and_open_board(card_id)
        async with self.locks.for_board(board.id):
            if await self.cards.get(card_id) is None:
                raise CardNotFound("Card not found")
            if not await self.reactions.remove(card_id, identity):
                logger.warning("reactions: nothing to remove card=%s user=%s", card_id, identity[:8])
                raise ReactionNotFound("Reaction not found")
            result = await self._apply(card_id, -1)

        logger.info("reactions: removed card=%s user=%s direct=%d", card_id, identity[:8], result.direct_reaction_count)
        return result

    async def _current(self, card_id: str) -> ReactionResponse:
        current = await self.cards.get(card_id)
        if current is None:
            raise CardNotFound("Card not found")
        parent = await self.cards.get(current.parent_card_id) if current.parent_card_id else None
        return ReactionResponse(
            card_id=current.id,
            reaction_type="thumbs_up",
            direct_reaction_count=current.direct_reaction_count,
            aggregated_reaction_count=current.aggregated_reaction_count,
            parent_card_id=current.parent_card_id,
            parent_aggregated_reaction_count=parent.aggregated_reaction_count if parent else None,
        )

    async def get_reaction_quota(self, board_id: str, identity: str) -> ReactionQuota:
        board = await self.boards.get(board_id)
        if board is None:
            raise BoardNotFound("Board not found")
        return await self.quota.reaction_quota(board, identity)
