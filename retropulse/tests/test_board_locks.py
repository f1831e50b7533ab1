"""
Concurrent writes on one board.

The memory store never suspends, so these tests swap in a store that
yields to the event loop inside its read-modify-write methods. Without
the per-board lock, interleaved reactions, unlinks and deletes leave
aggregates that disagree with the children's direct counts, and parallel
creates all slip under the card quota.
"""

from __future__ import annotations

import asyncio

import pytest

from cardgraph.aggregation import find_drift
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import CardType, LinkType
from retropulse.auth import hash_identity
from retropulse.container import build_container
from retropulse.errors import CardLimitReached, CardNotFound
from retropulse.models.card import Card, CreateCardRequest, LinkCardsRequest
from retropulse.models.reaction import AddReactionRequest
from retropulse.repos.board_repo import MemoryBoardStore
from retropulse.repos.card_repo import MemoryCardStore
from retropulse.repos.reaction_repo import MemoryReactionStore
from retropulse.tests.conftest import ALICE, make_board

pytestmark = pytest.mark.asyncio(loop_scope="session")

F = CardType.FEEDBACK
VOTERS = [hash_identity(f"voter-{i}") for i in range(20)]


class YieldingCardStore(MemoryCardStore):
    """MemoryCardStore that gives up the loop the way a database round trip would."""

    async def get(self, card_id):
        await asyncio.sleep(0)
        return await super().get(card_id)

    async def set_parent(self, child_id, parent_id):
        await asyncio.sleep(0)
        return await super().set_parent(child_id, parent_id)

    async def adjust_counts(self, card_id, *, direct_delta=0, aggregate_delta=0):
        await asyncio.sleep(0)
        return await super().adjust_counts(card_id, direct_delta=direct_delta, aggregate_delta=aggregate_delta)

    async def count_by_creator_and_type(self, board_id, creator, card_type):
        count = await super().count_by_creator_and_type(board_id, creator, card_type)
        await asyncio.sleep(0)
        return count


@pytest.fixture
def container():
    return build_container(YieldingCardStore(), MemoryBoardStore(), MemoryReactionStore())


async def nested_pair(container, seed) -> tuple[Card, Card]:
    parent = await seed(F, content="Releases slipped")
    child = await seed(F, content="QA started late")
    await container.card_service.link_cards(
        parent.id, LinkCardsRequest(target_card_id=child.id, link_type=LinkType.PARENT_OF), ALICE
    )
    return parent, child


async def assert_no_drift(container, board_id: str) -> None:
    snap = BoardSnapshot.from_cards(await container.cards.query(board_id), board_id=board_id)
    assert find_drift(snap) == []


class TestAggregateUnderContention:
    async def test_reactions_racing_unlink(self, container, board, seed):
        parent, child = await nested_pair(container, seed)
        reactions = container.reaction_service
        for voter in VOTERS[:5]:
            await reactions.add_reaction(child.id, AddReactionRequest(), voter)

        await asyncio.gather(
            *(reactions.add_reaction(child.id, AddReactionRequest(), v) for v in VOTERS[5:15]),
            *(reactions.remove_reaction(child.id, v) for v in VOTERS[:5]),
            *(reactions.add_reaction(parent.id, AddReactionRequest(), v) for v in VOTERS[15:]),
            container.card_service.unlink_cards(
                parent.id, LinkCardsRequest(target_card_id=child.id, link_type=LinkType.PARENT_OF), ALICE
            ),
        )

        await assert_no_drift(container, board.id)
        parent_now = await container.cards.get(parent.id)
        child_now = await container.cards.get(child.id)
        assert child_now.parent_card_id is None
        assert child_now.direct_reaction_count == 10
        assert parent_now.direct_reaction_count == 5
        assert parent_now.aggregated_reaction_count == 5

    async def test_reactions_racing_delete(self, container, board, seed):
        parent, child = await nested_pair(container, seed)
        reactions = container.reaction_service
        for voter in VOTERS[:3]:
            await reactions.add_reaction(child.id, AddReactionRequest(), voter)

        results = await asyncio.gather(
            *(reactions.add_reaction(child.id, AddReactionRequest(), v) for v in VOTERS[3:12]),
            *(reactions.remove_reaction(child.id, v) for v in VOTERS[:3]),
            *(reactions.add_reaction(parent.id, AddReactionRequest(), v) for v in VOTERS[12:16]),
            container.card_service.delete_card(child.id, ALICE),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert all(isinstance(f, CardNotFound) for f in failures), failures
        await assert_no_drift(container, board.id)
        assert await container.cards.get(child.id) is None
        assert not [key for key in container.reactions.reactions if key[0] == child.id]

        parent_now = await container.cards.get(parent.id)
        assert parent_now.direct_reaction_count == 4
        assert parent_now.aggregated_reaction_count == 4


class TestQuotaUnderContention:
    async def test_parallel_creates_respect_card_limit(self, container):
        limited = make_board(card_limit_per_user=1)
        await container.boards.put(limited)

        results = await asyncio.gather(
            *(
                container.card_service.create_card(
                    limited.id, CreateCardRequest(column_id="col-1", content=f"idea {i}", card_type=F), ALICE
                )
                for i in range(8)
            ),
            return_exceptions=True,
        )

        created = [r for r in results if isinstance(r, Card)]
        rejected = [r for r in results if isinstance(r, CardLimitReached)]
        assert len(created) == 1
        assert len(rejected) == 7
        assert await container.cards.count_by_creator_and_type(limited.id, ALICE, F) == 1
