"""Card Graph -- aggregate recompute and drift detection."""

import pytest

from cardgraph.aggregation import depth_violations, expected_aggregate, expected_aggregates, find_drift
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import AggregateDrift, CardNode, CardType


def node(card_id, *, parent=None, direct=0, agg=None):
    return CardNode(
        id=card_id,
        card_type=CardType.FEEDBACK,
        board_id="b1",
        parent_card_id=parent,
        direct_reaction_count=direct,
        aggregated_reaction_count=direct if agg is None else agg,
    )


class TestExpectedAggregate:
    def test_standalone_equals_direct(self):
        snap = BoardSnapshot([node("a", direct=4)])
        assert expected_aggregate(snap, "a") == 4

    def test_parent_sums_children(self):
        snap = BoardSnapshot([node("p", direct=3), node("c1", parent="p", direct=2), node("c2", parent="p", direct=1)])
        assert expected_aggregate(snap, "p") == 6
        assert expected_aggregates(snap) == {"p": 6, "c1": 2, "c2": 1}

    def test_unknown_card(self):
        with pytest.raises(KeyError):
            expected_aggregate(BoardSnapshot(), "missing")


class TestFindDrift:
    def test_consistent_board_has_no_drift(self):
        snap = BoardSnapshot([node("p", direct=3, agg=5), node("c", parent="p", direct=2)])
        assert find_drift(snap) == []

    def test_drift_is_reported_by_id(self):
        snap = BoardSnapshot(
            [node("p", direct=3, agg=9), node("c", parent="p", direct=2), node("b", direct=1, agg=0)]
        )
        assert find_drift(snap) == [
            AggregateDrift(card_id="b", recorded=0, expected=1),
            AggregateDrift(card_id="p", recorded=9, expected=5),
        ]

    def test_child_of_missing_parent_is_ignored(self):
        snap = BoardSnapshot([node("c", parent="gone", direct=2)])
        assert find_drift(snap) == []


class TestDepth:
    def test_one_level_is_fine(self):
        snap = BoardSnapshot([node("p"), node("c", parent="p")])
        assert depth_violations(snap) == []

    def test_grandchild_is_flagged(self):
        snap = BoardSnapshot([node("g"), node("p", parent="g"), node("c", parent="p")])
        assert depth_violations(snap) == ["c"]
