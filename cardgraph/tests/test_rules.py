"""
Card Graph -- Relationship Rule Table Tests

Covers:
  - Column drops always allowed
  - Self drop rejected for every card type
  - Type mismatch: feedback -> action, action -> action
  - One-level hierarchy: already-child, target-is-child, parent-cannot-become-child
  - Cycle detection, including fail-closed on corrupt parent chains
  - validate_link orientation (source is the parent for parent_of)
"""

import pytest

from cardgraph.rules import REASONS, ancestor_chain, validate_drop, validate_link, would_create_cycle
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import (
    ALREADY_CHILD,
    CARD_NOT_FOUND,
    CIRCULAR_RELATIONSHIP,
    HIERARCHY_DEPTH,
    SELF_DROP,
    TYPE_MISMATCH,
    CardNode,
    CardType,
    LinkType,
)

F = CardType.FEEDBACK
A = CardType.ACTION


def node(card_id, card_type=F, parent=None, direct=0, agg=None):
    return CardNode(
        id=card_id,
        card_type=card_type,
        board_id="b1",
        column_id="col-1",
        parent_card_id=parent,
        direct_reaction_count=direct,
        aggregated_reaction_count=direct if agg is None else agg,
        created_at=f"2026-01-01T00:00:{card_id[-1]}0+00:00",
    )


def snapshot(*nodes):
    return BoardSnapshot(nodes, board_id="b1")


# ============================================================================
# Rule table (drag orientation)
# ============================================================================


class TestColumnDrop:
    def test_any_card_may_drop_on_a_column(self):
        snap = snapshot(node("f1"), node("a1", A))
        assert validate_drop(snap, "f1", F, "col-2", "column").ok
        assert validate_drop(snap, "a1", A, "col-2", "column").ok

    def test_column_drop_ignores_hierarchy(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"))
        assert validate_drop(snap, "c1", F, "col-2", "column").ok


class TestSelfDrop:
    @pytest.mark.parametrize("card_type", [F, A])
    def test_self_drop_rejected(self, card_type):
        snap = snapshot(node("x1", card_type))
        verdict = validate_drop(snap, "x1", card_type, "x1", "card")
        assert not verdict
        assert verdict.code == SELF_DROP
        assert verdict.reason == REASONS[SELF_DROP]


class TestTypeMismatch:
    def test_feedback_on_action_rejected(self):
        snap = snapshot(node("f1"), node("a1", A))
        verdict = validate_drop(snap, "f1", F, "a1", "card")
        assert verdict.code == TYPE_MISMATCH
        assert verdict.reason == "Cannot drop feedback on action card"

    def test_action_on_action_rejected(self):
        snap = snapshot(node("a1", A), node("a2", A))
        verdict = validate_drop(snap, "a1", A, "a2", "card")
        assert verdict.code == TYPE_MISMATCH
        assert verdict.reason == "Cannot link action to action"

    def test_action_on_feedback_allowed(self):
        snap = snapshot(node("a1", A), node("f1"))
        assert validate_drop(snap, "a1", A, "f1", "card").ok

    def test_action_on_child_feedback_allowed(self):
        """Actions may address any feedback, nested or not."""
        snap = snapshot(node("a1", A), node("p1"), node("c1", parent="p1"))
        assert validate_drop(snap, "a1", A, "c1", "card").ok


class TestHierarchy:
    def test_standalone_feedback_nests(self):
        snap = snapshot(node("f1"), node("f2"))
        assert validate_drop(snap, "f1", F, "f2", "card").ok

    def test_dragged_card_already_has_parent(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_drop(snap, "c1", F, "f3", "card")
        assert verdict.code == ALREADY_CHILD

    def test_target_is_a_child(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_drop(snap, "f3", F, "c1", "card")
        assert verdict.code == HIERARCHY_DEPTH
        assert verdict.reason == REASONS[HIERARCHY_DEPTH]

    def test_parent_cannot_become_a_child(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_drop(snap, "p1", F, "f3", "card")
        assert verdict.code == HIERARCHY_DEPTH
        assert "parent card cannot become a child" in verdict.reason

    def test_missing_target(self):
        snap = snapshot(node("f1"))
        verdict = validate_drop(snap, "f1", F, "gone", "card")
        assert verdict.code == CARD_NOT_FOUND


class TestCycles:
    def test_ancestor_chain_walks_to_root(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"))
        assert ancestor_chain(snap, "c1") == (["c1", "p1"], False)

    def test_corrupt_chain_is_reported(self):
        snap = snapshot(node("x1", parent="x2"), node("x2", parent="x1"))
        chain, corrupt = ancestor_chain(snap, "x1")
        assert corrupt
        assert chain == ["x1", "x2"]

    def test_child_on_parents_chain_is_a_cycle(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"))
        assert would_create_cycle(snap, "c1", "p1")

    def test_unrelated_cards_are_not_a_cycle(self):
        snap = snapshot(node("f1"), node("f2"))
        assert not would_create_cycle(snap, "f1", "f2")

    def test_corrupt_chain_fails_closed(self):
        snap = snapshot(node("x1", parent="x2"), node("x2", parent="x1"), node("f3"))
        assert would_create_cycle(snap, "x1", "f3")


# ============================================================================
# validate_link (service orientation)
# ============================================================================


class TestValidateLink:
    def test_parent_of_allows_standalone_pair(self):
        snap = snapshot(node("f1"), node("f2"))
        assert validate_link(snap, "f1", "f2", LinkType.PARENT_OF).ok

    def test_parent_of_self(self):
        snap = snapshot(node("f1"))
        verdict = validate_link(snap, "f1", "f1", LinkType.PARENT_OF)
        assert verdict.code == SELF_DROP

    def test_parent_of_requires_feedback_pair(self):
        snap = snapshot(node("a1", A), node("f1"))
        assert validate_link(snap, "a1", "f1", LinkType.PARENT_OF).code == TYPE_MISMATCH
        assert validate_link(snap, "f1", "a1", LinkType.PARENT_OF).code == TYPE_MISMATCH

    def test_parent_of_target_with_parent(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_link(snap, "f3", "c1", LinkType.PARENT_OF)
        assert verdict.code == ALREADY_CHILD
        assert verdict.reason == "Target card already has a parent"

    def test_parent_of_source_that_is_a_child(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_link(snap, "c1", "f3", LinkType.PARENT_OF)
        assert verdict.code == HIERARCHY_DEPTH
        assert verdict.reason == "A child card cannot become a parent (1-level hierarchy limit)"

    def test_parent_of_target_that_is_a_parent(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"), node("f3"))
        verdict = validate_link(snap, "f3", "p1", LinkType.PARENT_OF)
        assert verdict.code == HIERARCHY_DEPTH

    def test_parent_of_reverse_of_existing_link_rejected(self):
        snap = snapshot(node("p1"), node("c1", parent="p1"))
        assert not validate_link(snap, "c1", "p1", LinkType.PARENT_OF)

    def test_linked_to_requires_action_source(self):
        snap = snapshot(node("f1"), node("f2"))
        verdict = validate_link(snap, "f1", "f2", LinkType.LINKED_TO)
        assert verdict.code == TYPE_MISMATCH
        assert verdict.reason == "Source card must be an action card"

    def test_linked_to_action_target_rejected(self):
        snap = snapshot(node("a1", A), node("a2", A))
        assert validate_link(snap, "a1", "a2", LinkType.LINKED_TO).code == TYPE_MISMATCH

    def test_linked_to_feedback_allowed(self):
        snap = snapshot(node("a1", A), node("f1"))
        assert validate_link(snap, "a1", "f1", LinkType.LINKED_TO).ok

    def test_missing_card(self):
        snap = snapshot(node("f1"))
        assert validate_link(snap, "f1", "nope", LinkType.PARENT_OF).code == CARD_NOT_FOUND

    def test_string_link_type_accepted(self):
        snap = snapshot(node("f1"), node("f2"))
        assert validate_link(snap, "f1", "f2", "parent_of").ok
