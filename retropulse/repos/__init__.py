"""
Repository layer for RetroPulse.

All SQL lives here and ONLY here. No database access outside this module.
"""

from retropulse.repos.board_repo import BoardStore, MemoryBoardStore, PostgresBoardStore
from retropulse.repos.card_repo import CardStore, MemoryCardStore
from retropulse.repos.postgres_card_repo import PostgresCardStore
from retropulse.repos.reaction_repo import MemoryReactionStore, PostgresReactionStore, ReactionStore

__all__ = [
    "BoardStore",
    "MemoryBoardStore",
    "PostgresBoardStore",
    "CardStore",
    "MemoryCardStore",
    "PostgresCardStore",
    "ReactionStore",
    "MemoryReactionStore",
    "PostgresReactionStore",
]
