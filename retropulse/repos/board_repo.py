"""
Board lookups for the card engine.

Boards and participant aliases are owned by the board service; the card
engine reads them (and tests seed them) through BoardStore.
"""

from __future__ import annotations

import asyncpg

from retropulse.db import connection
from retropulse.models.board import Board, Column


class BoardStore:
    """Abstract board lookup interface."""

    async def get(self, board_id: str) -> Board | None:
        raise NotImplementedError

    async def put(self, board: Board) -> None:
        raise NotImplementedError

    async def find_alias(self, board_id: str, identity: str) -> str | None:
        """Display alias a participant chose on this board, if any."""
        raise NotImplementedError

    async def set_alias(self, board_id: str, identity: str, alias: str) -> None:
        raise NotImplementedError


class MemoryBoardStore(BoardStore):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.boards: dict[str, Board] = {}
        self.aliases: dict[tuple[str, str], str] = {}

    async def get(self, board_id: str) -> Board | None:
        board = self.boards.get(board_id)
        return board.model_copy(deep=True) if board else None

    async def put(self, board: Board) -> None:
        self.boards[board.id] = board.model_copy(deep=True)

    async def find_alias(self, board_id: str, identity: str) -> str | None:
        return self.aliases.get((board_id, identity))

    async def set_alias(self, board_id: str, identity: str, alias: str) -> None:
        self.aliases[(board_id, identity)] = alias


def _row_to_board(row: asyncpg.Record) -> Board:
    """Convert a database row to a Board model."""
    return Board(
        id=row["id"],
        name=row["name"],
        columns=[Column(**col) for col in row["columns"] or []],
        state=row["state"],
        card_limit_per_user=row["card_limit_per_user"],
        reaction_limit_per_user=row["reaction_limit_per_user"],
        admins=list(row["admins"] or []),
        created_by_hash=row["created_by_hash"],
        created_at=row["created_at"],
        closed_at=row["closed_at"],
    )


class PostgresBoardStore(BoardStore):
    """Board and alias reads against the boards and board_aliases tables."""

    async def get(self, board_id: str) -> Board | None:
        async with connection() as conn:
            row = await conn.fetchrow("SELECT * FROM boards WHERE id = $1", board_id)
            return _row_to_board(row) if row else None

    async def put(self, board: Board) -> None:
        async with connection() as conn:
            await conn.execute(
                """
                INSERT INTO boards (
                    id, name, columns, state, card_limit_per_user, reaction_limit_per_user,
                    admins, created_by_hash, created_at, closed_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    columns = EXCLUDED.columns,
                    state = EXCLUDED.state,
                    card_limit_per_user = EXCLUDED.card_limit_per_user,
                    reaction_limit_per_user = EXCLUDED.reaction_limit_per_user,
                    admins = EXCLUDED.admins,
                    closed_at = EXCLUDED.closed_at
                """,
                board.id,
                board.name,
                [col.model_dump() for col in board.columns],
                board.state,
                board.card_limit_per_user,
                board.reaction_limit_per_user,
                board.admins,
                board.created_by_hash,
                board.created_at,
                board.closed_at,
            )

    async def find_alias(self, board_id: str, identity: str) -> str | None:
        async with connection() as conn:
            return await conn.fetchval(
                "SELECT alias FROM board_aliases WHERE board_id = $1 AND user_hash = $2",
                board_id,
                identity,
            )

    async def set_alias(self, board_id: str, identity: str, alias: str) -> None:
        async with connection() as conn:
            await conn.execute(
                """
                INSERT INTO board_aliases (board_id, user_hash, alias)
                VALUES ($1, $2, $3)
                ON CONFLICT (board_id, user_hash) DO UPDATE SET alias = EXCLUDED.alias
                """,
                board_id,
                identity,
                alias,
            )
