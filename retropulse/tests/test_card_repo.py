"""Tests for MemoryCardStore and MemoryReactionStore."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cardgraph.types import CardType
from retropulse.models.card import Card
from retropulse.models.reaction import Reaction
from retropulse.repos.card_repo import MemoryCardStore
from retropulse.repos.reaction_repo import MemoryReactionStore
from retropulse.tests.conftest import ALICE, BOB

pytestmark = pytest.mark.asyncio(loop_scope="session")

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def make_card(card_id: str, *, board_id="b1", card_type=CardType.FEEDBACK, minute=0, **fields) -> Card:
    return Card(
        id=card_id,
        board_id=board_id,
        column_id=fields.pop("column_id", "col-1"),
        content=f"card {card_id}",
        card_type=card_type,
        created_by_hash=fields.pop("created_by_hash", ALICE),
        created_at=T0 + timedelta(minutes=minute),
        **fields,
    )


@pytest.fixture
def store() -> MemoryCardStore:
    return MemoryCardStore()


class TestMemoryCardStore:
    async def test_reads_are_copies(self, store):
        await store.put(make_card("a"))
        first = await store.get("a")
        first.content = "mutated"
        assert (await store.get("a")).content == "card a"

    async def test_query_filters_and_order(self, store):
        await store.put(make_card("late", minute=5))
        await store.put(make_card("early", minute=1))
        await store.put(make_card("child", minute=2, parent_card_id="early"))
        await store.put(make_card("elsewhere", board_id="b2"))
        await store.put(make_card("bobs", minute=3, created_by_hash=BOB, column_id="col-2"))

        assert [c.id for c in await store.query("b1")] == ["early", "child", "bobs", "late"]
        assert [c.id for c in await store.query("b1", top_level_only=True)] == ["early", "bobs", "late"]
        assert [c.id for c in await store.query("b1", column_id="col-2")] == ["bobs"]
        assert [c.id for c in await store.query("b1", created_by=BOB)] == ["bobs"]

    async def test_counts(self, store):
        await store.put(make_card("f1"))
        await store.put(make_card("f2", parent_card_id="f1"))
        await store.put(make_card("a1", card_type=CardType.ACTION, column_id="col-3"))

        assert await store.count_by_creator_and_type("b1", ALICE, CardType.FEEDBACK) == 2
        assert await store.count_by_creator_and_type("b1", ALICE, CardType.ACTION) == 1
        assert await store.count_by_board("b1") == 2
        assert await store.count_by_column("b1") == {"col-1": 1, "col-3": 1}

    async def test_update_if_creator(self, store):
        await store.put(make_card("a"))
        assert await store.update_if_creator("a", {"content": "x"}, require_creator=BOB) is None
        updated = await store.update_if_creator("a", {"content": "x"}, require_creator=ALICE)
        assert updated.content == "x"
        assert await store.update_if_creator("missing", {"content": "x"}, require_creator=ALICE) is None

    async def test_adjust_counts_never_negative(self, store):
        await store.put(make_card("a", direct_reaction_count=1, aggregated_reaction_count=1))
        card = await store.adjust_counts("a", direct_delta=-3, aggregate_delta=-3)
        assert card.direct_reaction_count == 0
        assert card.aggregated_reaction_count == 0
        assert await store.adjust_counts("missing", direct_delta=1) is None

    async def test_linked_feedback_is_a_set(self, store):
        await store.put(make_card("act", card_type=CardType.ACTION))
        await store.add_linked_feedback("act", "f1")
        await store.add_linked_feedback("act", "f1")
        await store.add_linked_feedback("act", "f2")
        assert (await store.get("act")).linked_feedback_ids == ["f1", "f2"]
        assert [c.id for c in await store.actions_linking("f1")] == ["act"]

        await store.remove_linked_feedback("act", "f1")
        assert (await store.get("act")).linked_feedback_ids == ["f2"]

    async def test_orphan_children_returns_ids(self, store):
        await store.put(make_card("p"))
        await store.put(make_card("c2", parent_card_id="p"))
        await store.put(make_card("c1", parent_card_id="p"))
        assert await store.orphan_children("p") == ["c1", "c2"]
        assert await store.children_of("p") == []

    async def test_unlink_feedback_everywhere(self, store):
        await store.put(make_card("a1", card_type=CardType.ACTION, linked_feedback_ids=["f", "g"]))
        await store.put(make_card("a2", card_type=CardType.ACTION, linked_feedback_ids=["f"]))
        await store.put(make_card("a3", card_type=CardType.ACTION, board_id="b2", linked_feedback_ids=["f"]))

        assert await store.unlink_feedback_everywhere("b1", "f") == ["a1", "a2"]
        assert (await store.get("a1")).linked_feedback_ids == ["g"]
        assert (await store.get("a3")).linked_feedback_ids == ["f"]

    async def test_delete_and_delete_by_board(self, store):
        await store.put(make_card("a"))
        await store.put(make_card("b"))
        await store.put(make_card("z", board_id="b2"))
        assert await store.delete("a") is True
        assert await store.delete("a") is False
        assert await store.delete_by_board("b1") == ["b"]
        assert [c.id for c in await store.query("b2")] == ["z"]


class TestMemoryReactionStore:
    async def test_one_per_user_per_card(self):
        store = MemoryReactionStore()
        reaction = Reaction(card_id="c1", board_id="b1", user_hash=BOB, created_at=T0)
        assert await store.add(reaction) is True
        assert await store.add(reaction) is False
        assert await store.count_for_user_on_board("b1", BOB) == 1

        assert await store.remove("c1", BOB) is True
        assert await store.remove("c1", BOB) is False

    async def test_delete_for_card(self):
        store = MemoryReactionStore()
        for user in (ALICE, BOB):
            await store.add(Reaction(card_id="c1", board_id="b1", user_hash=user, created_at=T0))
        await store.add(Reaction(card_id="c2", board_id="b1", user_hash=BOB, created_at=T0))

        assert await store.delete_for_card("c1") == 2
        assert await store.count_for_user_on_board("b1", BOB) == 1
