"""
Wiring for stores and services.

One Container per process. main.lifespan installs it; routes reach it
through the get_container dependency, which tests override with a
memory-backed container.
"""

from __future__ import annotations

from dataclasses import dataclass

from retropulse.repos.board_repo import BoardStore, MemoryBoardStore, PostgresBoardStore
from retropulse.repos.card_repo import CardStore, MemoryCardStore
from retropulse.repos.postgres_card_repo import PostgresCardStore
from retropulse.repos.reaction_repo import MemoryReactionStore, PostgresReactionStore, ReactionStore
from retropulse.services.board_locks import BoardLocks
from retropulse.services.broadcaster import EventBroadcaster
from retropulse.services.card_service import CardService
from retropulse.services.quota import QuotaGate
from retropulse.services.reaction_service import ReactionService


@dataclass
class Container:
    cards: CardStore
    boards: BoardStore
    reactions: ReactionStore
    broadcaster: EventBroadcaster
    card_service: CardService
    reaction_service: ReactionService


def build_container(cards: CardStore, boards: BoardStore, reactions: ReactionStore) -> Container:
    broadcaster = EventBroadcaster()
    locks = BoardLocks()
    quota = QuotaGate(cards, reactions)
    return Container(
        cards=cards,
        boards=boards,
        reactions=reactions,
        broadcaster=broadcaster,
        card_service=CardService(cards, boards, reactions, quota, broadcaster, locks),
        reaction_service=ReactionService(cards, boards, reactions, quota, broadcaster, locks),
    )


def memory_container() -> Container:
    return build_container(MemoryCardStore(), MemoryBoardStore(), MemoryReactionStore())


def postgres_container() -> Container:
    """Stores backed by the pool in retropulse.db. init_pool() must run first."""
    return build_container(PostgresCardStore(), PostgresBoardStore(), PostgresReactionStore())


_container: Container | None = None


def set_container(container: Container | None) -> None:
    global _container
    _container = container


def get_container() -> Container:
    """FastAPI dependency."""
    if _container is None:
        raise RuntimeError("Container not initialized. Is the app lifespan running?")
    return _container
