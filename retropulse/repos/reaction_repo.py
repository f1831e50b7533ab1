"""Reaction ledger. One row per user per card."""

from __future__ import annotations

import asyncpg

from retropulse.db import connection
from retropulse.models.reaction import Reaction


class ReactionStore:
    """Abstract reaction ledger interface."""

    async def get(self, card_id: str, user_hash: str) -> Reaction | None:
        raise NotImplementedError

    async def add(self, reaction: Reaction) -> bool:
        """Record a reaction. Returns False if this user already reacted to the card."""
        raise NotImplementedError

    async def remove(self, card_id: str, user_hash: str) -> bool:
        """Returns False if there was nothing to remove."""
        raise NotImplementedError

    async def count_for_user_on_board(self, board_id: str, user_hash: str) -> int:
        raise NotImplementedError

    async def delete_for_card(self, card_id: str) -> int:
        raise NotImplementedError


class MemoryReactionStore(ReactionStore):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.reactions: dict[tuple[str, str], Reaction] = {}

    async def get(self, card_id: str, user_hash: str) -> Reaction | None:
        reaction = self.reactions.get((card_id, user_hash))
        return reaction.model_copy() if reaction else None

    async def add(self, reaction: Reaction) -> bool:
        key = (reaction.card_id, reaction.user_hash)
        if key in self.reactions:
            return False
        self.reactions[key] = reaction.model_copy()
        return True

    async def remove(self, card_id: str, user_hash: str) -> bool:
        return self.reactions.pop((card_id, user_hash), None) is not None

    async def count_for_user_on_board(self, board_id: str, user_hash: str) -> int:
        return sum(1 for r in self.reactions.values() if r.board_id == board_id and r.user_hash == user_hash)

    async def delete_for_card(self, card_id: str) -> int:
        keys = [key for key in self.reactions if key[0] == card_id]
        for key in keys:
            del self.reactions[key]
        return len(keys)


def _row_to_reaction(row: asyncpg.Record) -> Reaction:
    """Convert a database row to a Reaction model."""
    return Reaction(
        card_id=row["card_id"],
        board_id=row["board_id"],
        user_hash=row["user_hash"],
        user_alias=row["user_alias"],
        reaction_type=row["reaction_type"],
        created_at=row["created_at"],
    )


class PostgresReactionStore(ReactionStore):
    """Reaction ledger on the reactions table (unique on card_id, user_hash)."""

    async def get(self, card_id: str, user_hash: str) -> Reaction | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM reactions WHERE card_id = $1 AND user_hash = $2",
                card_id,
                user_hash,
            )
            return _row_to_reaction(row) if row else None

    async def add(self, reaction: Reaction) -> bool:
        async with connection() as conn:
            result = await conn.execute(
                """
                INSERT INTO reactions (card_id, board_id, user_hash, user_alias, reaction_type, created_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (card_id, user_hash) DO NOTHING
                """,
                reaction.card_id,
                reaction.board_id,
                reaction.user_hash,
                reaction.user_alias,
                reaction.reaction_type,
                reaction.created_at,
            )
            return result == "INSERT 0 1"

    async def remove(self, card_id: str, user_hash: str) -> bool:
        async with connection() as conn:
            result = await conn.execute(
                "DELETE FROM reactions WHERE card_id = $1 AND user_hash = $2",
                card_id,
                user_hash,
            )
            return result == "DELETE 1"

    async def count_for_user_on_board(self, board_id: str, user_hash: str) -> int:
        async with connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM reactions WHERE board_id = $1 AND user_hash = $2",
                board_id,
                user_hash,
            )

    async def delete_for_card(self, card_id: str) -> int:
        async with connection() as conn:
            result = await conn.execute("DELETE FROM reactions WHERE card_id = $1", card_id)
            return int(result.split()[-1])
