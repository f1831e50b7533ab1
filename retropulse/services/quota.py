"""Per-user quotas for feedback cards and reactions on a board."""

from __future__ import annotations

import logging
from typing import Literal

from cardgraph.types import CardType
from retropulse.errors import CardLimitReached, ReactionLimitReached
from retropulse.models.board import Board
from retropulse.models.card import CardQuota
from retropulse.models.reaction import ReactionQuota
from retropulse.repos.card_repo import CardStore
from retropulse.repos.reaction_repo import ReactionStore

logger = logging.getLogger(__name__)

QuotaKind = Literal["card", "reaction"]


class QuotaGate:
    """
    Quota checks read live counts from the stores.

    Only feedback cards count against the card quota. Callers hold the
    board lock across check_and_reserve() and the insert that follows, so
    two requests from one user cannot both squeeze under the limit.
    """

    def __init__(self, cards: CardStore, reactions: ReactionStore) -> None:
        self._cards = cards
        self._reactions = reactions

    async def _current(self, board: Board, identity: str, kind: QuotaKind) -> int:
        if kind == "card":
            return await self._cards.count_by_creator_and_type(board.id, identity, CardType.FEEDBACK)
        return await self._reactions.count_for_user_on_board(board.id, identity)

    async def check_and_reserve(self, board: Board, identity: str, kind: QuotaKind) -> None:
        """
        Raise if identity has used up its quota of `kind` on this board.

        Raises:
            CardLimitReached / ReactionLimitReached
        """
        limit = board.card_limit_per_user if kind == "card" else board.reaction_limit_per_user
        if limit is None:
            return
        current = await self._current(board, identity, kind)
        if current < limit:
            return
        logger.warning("quota: %s limit %d reached on board=%s user=%s", kind, limit, board.id, identity[:8])
        if kind == "card":
            raise CardLimitReached(f"Card limit of {limit} reached", details={"limit": limit})
        raise ReactionLimitReached(f"Reaction limit of {limit} reached", details={"limit": limit})

    async def card_quota(self, board: Board, identity: str) -> CardQuota:
        current = await self._current(board, identity, "card")
        limit = board.card_limit_per_user
        if limit is None:
            return CardQuota(current_count=current, limit=None, can_create=True, limit_enabled=False)
        return CardQuota(current_count=current, limit=limit, can_create=current < limit, limit_enabled=True)

    async def reaction_quota(self, board: Board, identity: str) -> ReactionQuota:
        current = await self._current(board, identity, "reaction")
        limit = board.reaction_limit_per_user
        if limit is None:
            return ReactionQuota(current_count=current, limit=None, can_react=True, limit_enabled=False)
        return ReactionQuota(current_count=current, limit=limit, can_react=current < limit, limit_enabled=True)
