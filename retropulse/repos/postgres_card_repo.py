"""Postgres-backed card store. Every method is one SQL statement."""

from __future__ import annotations

from typing import Any

import asyncpg

from cardgraph.types import CardType
from retropulse.db import connection
from retropulse.models.card import Card
from retropulse.repos.card_repo import CardStore

# Columns a conditional creator write may touch.
_UPDATABLE = ("content", "column_id", "updated_at")


def _row_to_card(row: asyncpg.Record) -> Card:
    """Convert a database row to a Card model."""
    return Card(
        id=row["id"],
        board_id=row["board_id"],
        column_id=row["column_id"],
        content=row["content"],
        card_type=row["card_type"],
        is_anonymous=row["is_anonymous"],
        created_by_hash=row["created_by_hash"],
        created_by_alias=row["created_by_alias"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        direct_reaction_count=row["direct_reaction_count"],
        aggregated_reaction_count=row["aggregated_reaction_count"],
        parent_card_id=row["parent_card_id"],
        linked_feedback_ids=list(row["linked_feedback_ids"] or []),
    )


class PostgresCardStore(CardStore):
    """All card database operations."""

    async def get(self, card_id: str) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow("SELECT * FROM cards WHERE id = $1", card_id)
            return _row_to_card(row) if row else None

    async def put(self, card: Card) -> None:
        """
        Insert or replace a card.

        Args:
            card: Full card model; every column is written.
        """
        async with connection() as conn:
            await conn.execute(
                """
                INSERT INTO cards (
                    id, board_id, column_id, content, card_type, is_anonymous,
                    created_by_hash, created_by_alias, created_at, updated_at,
                    direct_reaction_count, aggregated_reaction_count,
                    parent_card_id, linked_feedback_ids
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                ON CONFLICT (id) DO UPDATE SET
                    column_id = EXCLUDED.column_id,
                    content = EXCLUDED.content,
                    is_anonymous = EXCLUDED.is_anonymous,
                    created_by_alias = EXCLUDED.created_by_alias,
                    updated_at = EXCLUDED.updated_at,
                    direct_reaction_count = EXCLUDED.direct_reaction_count,
                    aggregated_reaction_count = EXCLUDED.aggregated_reaction_count,
                    parent_card_id = EXCLUDED.parent_card_id,
                    linked_feedback_ids = EXCLUDED.linked_feedback_ids
                """,
                card.id,
                card.board_id,
                card.column_id,
                card.content,
                card.card_type.value,
                card.is_anonymous,
                card.created_by_hash,
                card.created_by_alias,
                card.created_at,
                card.updated_at,
                card.direct_reaction_count,
                card.aggregated_reaction_count,
                card.parent_card_id,
                card.linked_feedback_ids,
            )

    async def delete(self, card_id: str) -> bool:
        async with connection() as conn:
            result = await conn.execute("DELETE FROM cards WHERE id = $1", card_id)
            return result == "DELETE 1"

    async def query(
        self,
        board_id: str,
        *,
        column_id: str | None = None,
        created_by: str | None = None,
        top_level_only: bool = False,
    ) -> list[Card]:
        async with connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM cards
                WHERE board_id = $1
                  AND ($2::text IS NULL OR column_id = $2)
                  AND ($3::text IS NULL OR created_by_hash = $3)
                  AND (NOT $4 OR parent_card_id IS NULL)
                ORDER BY created_at ASC, id ASC
                """,
                board_id,
                column_id,
                created_by,
                top_level_only,
            )
            return [_row_to_card(row) for row in rows]

    async def count_by_creator_and_type(self, board_id: str, creator: str, card_type: CardType) -> int:
        async with connection() as conn:
            return await conn.fetchval(
                """
                SELECT COUNT(*) FROM cards
                WHERE board_id = $1 AND created_by_hash = $2 AND card_type = $3
                """,
                board_id,
                creator,
                card_type.value,
            )

    async def count_by_column(self, board_id: str) -> dict[str, int]:
        async with connection() as conn:
            rows = await conn.fetch(
                """
                SELECT column_id, COUNT(*) AS n FROM cards
                WHERE board_id = $1 AND parent_card_id IS NULL
                GROUP BY column_id
                """,
                board_id,
            )
            return {row["column_id"]: row["n"] for row in rows}

    async def count_by_board(self, board_id: str) -> int:
        async with connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM cards WHERE board_id = $1 AND parent_card_id IS NULL",
                board_id,
            )

    async def children_of(self, parent_id: str) -> list[Card]:
        async with connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM cards WHERE parent_card_id = $1 ORDER BY created_at ASC, id ASC",
                parent_id,
            )
            return [_row_to_card(row) for row in rows]

    async def actions_linking(self, feedback_id: str) -> list[Card]:
        async with connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM cards
                WHERE card_type = 'action' AND $1 = ANY(linked_feedback_ids)
                ORDER BY created_at ASC, id ASC
                """,
                feedback_id,
            )
            return [_row_to_card(row) for row in rows]

    async def update_if_creator(
        self, card_id: str, changes: dict[str, Any], require_creator: str
    ) -> Card | None:
        """
        Conditional write: the creator check and the update are one statement.

        Args:
            card_id: Card to update
            changes: Column -> value; only content, column_id and updated_at are allowed
            require_creator: Identity that must match created_by_hash

        Returns:
            Updated Card, or None when the card is gone or owned by someone else
        """
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not changes:
            return await self.get(card_id)

        columns = list(changes)
        assignments = ", ".join(f"{col} = ${i + 3}" for i, col in enumerate(columns))
        async with connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE cards SET {assignments}
                WHERE id = $1 AND created_by_hash = $2
                RETURNING *
                """,
                card_id,
                require_creator,
                *(changes[col] for col in columns),
            )
            return _row_to_card(row) if row else None

    async def set_parent(self, child_id: str, parent_id: str | None) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                "UPDATE cards SET parent_card_id = $2 WHERE id = $1 RETURNING *",
                child_id,
                parent_id,
            )
            return _row_to_card(row) if row else None

    async def adjust_counts(
        self, card_id: str, *, direct_delta: int = 0, aggregate_delta: int = 0
    ) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE cards SET
                    direct_reaction_count = GREATEST(0, direct_reaction_count + $2),
                    aggregated_reaction_count = GREATEST(0, aggregated_reaction_count + $3)
                WHERE id = $1
                RETURNING *
                """,
                card_id,
                direct_delta,
                aggregate_delta,
            )
            return _row_to_card(row) if row else None

    async def set_aggregate(self, card_id: str, value: int) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                "UPDATE cards SET aggregated_reaction_count = GREATEST(0, $2) WHERE id = $1 RETURNING *",
                card_id,
                value,
            )
            return _row_to_card(row) if row else None

    async def add_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE cards SET linked_feedback_ids = CASE
                    WHEN $2 = ANY(linked_feedback_ids) THEN linked_feedback_ids
                    ELSE array_append(linked_feedback_ids, $2)
                END
                WHERE id = $1
                RETURNING *
                """,
                action_id,
                feedback_id,
            )
            return _row_to_card(row) if row else None

    async def remove_linked_feedback(self, action_id: str, feedback_id: str) -> Card | None:
        async with connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE cards SET linked_feedback_ids = array_remove(linked_feedback_ids, $2)
                WHERE id = $1
                RETURNING *
                """,
                action_id,
                feedback_id,
            )
            return _row_to_card(row) if row else None

    async def orphan_children(self, parent_id: str) -> list[str]:
        async with connection() as conn:
            rows = await conn.fetch(
                "UPDATE cards SET parent_card_id = NULL WHERE parent_card_id = $1 RETURNING id",
                parent_id,
            )
            return sorted(row["id"] for row in rows)

    async def unlink_feedback_everywhere(self, board_id: str, feedback_id: str) -> list[str]:
        async with connection() as conn:
            rows = await conn.fetch(
                """
                UPDATE cards SET linked_feedback_ids = array_remove(linked_feedback_ids, $2)
                WHERE board_id = $1 AND $2 = ANY(linked_feedback_ids)
                RETURNING id
                """,
                board_id,
                feedback_id,
            )
            return sorted(row["id"] for row in rows)

    async def delete_by_board(self, board_id: str) -> list[str]:
        async with connection() as conn:
            rows = await conn.fetch("DELETE FROM cards WHERE board_id = $1 RETURNING id", board_id)
            return sorted(row["id"] for row in rows)
