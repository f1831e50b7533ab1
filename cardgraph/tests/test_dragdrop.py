"""
Card Graph -- Drag-Drop Predictive Validator Tests

Covers:
  - State machine transitions (IDLE, DRAGGING, HOVER_*, COMMITTED)
  - Hover verdicts match the shared rule table
  - Commit fires exactly once, only from HOVER_VALID
  - Snapshot changes between hover and drop are re-checked
"""

import pytest

from cardgraph import events
from cardgraph.dragdrop import DragDropController, DragState, DropIntent
from cardgraph.rules import REASONS
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import HIERARCHY_DEPTH, NOT_DRAGGING, SELF_DROP, CardNode, CardType, LinkType


def node(card_id, card_type=CardType.FEEDBACK, parent=None):
    return CardNode(id=card_id, card_type=card_type, board_id="b1", column_id="col-1", parent_card_id=parent)


@pytest.fixture
def board():
    return BoardSnapshot(
        [node("x"), node("y"), node("p"), node("c", parent="p"), node("act", CardType.ACTION)],
        board_id="b1",
    )


@pytest.fixture
def committed():
    return []


@pytest.fixture
def controller(board, committed):
    return DragDropController(board, commit=committed.append)


class TestStateMachine:
    def test_starts_idle(self, controller):
        assert controller.state is DragState.IDLE
        assert not controller.is_dragging

    def test_drag_start_enters_dragging(self, controller):
        controller.drag_start("x")
        assert controller.state is DragState.DRAGGING
        assert controller.item.card_type is CardType.FEEDBACK

    def test_drag_start_unknown_card_without_type(self, controller):
        with pytest.raises(KeyError):
            controller.drag_start("ghost")

    def test_hover_valid_then_invalid(self, controller):
        controller.drag_start("x")
        assert controller.drag_over("y", "card").ok
        assert controller.state is DragState.HOVER_VALID
        assert not controller.drag_over("act", "card").ok
        assert controller.state is DragState.HOVER_INVALID
        assert controller.drop_error == "Cannot drop feedback on action card"

    def test_hover_when_idle_is_rejected_without_state_change(self, controller):
        verdict = controller.drag_over("y", "card")
        assert verdict.code == NOT_DRAGGING
        assert controller.state is DragState.IDLE

    def test_cancel_returns_to_idle(self, controller, committed):
        controller.drag_start("x")
        controller.drag_over("y", "card")
        controller.cancel()
        assert controller.state is DragState.IDLE
        assert controller.item is None
        assert committed == []

    def test_can_drop_on_does_not_move_state(self, controller):
        controller.drag_start("x")
        assert controller.can_drop_on("y", "card")
        assert not controller.can_drop_on("x", "card")
        assert controller.state is DragState.DRAGGING


class TestScenarioFive:
    """Drop of X onto X, and onto any card that already has a parent, is rejected."""

    def test_self_drop(self, controller):
        controller.drag_start("x")
        verdict = controller.drag_over("x", "card")
        assert verdict.code == SELF_DROP
        assert controller.drop_error == REASONS[SELF_DROP]

    def test_drop_on_child(self, controller):
        controller.drag_start("x")
        verdict = controller.drag_over("c", "card")
        assert verdict.code == HIERARCHY_DEPTH

    def test_invalid_drop_commits_nothing(self, controller, committed):
        controller.drag_start("x")
        controller.drag_over("c", "card")
        assert controller.drop() is None
        assert controller.state is DragState.IDLE
        assert committed == []


class TestCommit:
    def test_feedback_on_feedback_links_parent_child(self, controller, committed):
        controller.drag_start("x")
        controller.drag_over("y", "card")
        intent = controller.drop()
        assert intent == DropIntent("link_parent_child", "x", "y")
        assert intent.parent_id == "y"
        assert intent.child_id == "x"
        assert controller.state is DragState.COMMITTED
        assert committed == [intent]

    def test_action_on_feedback_links_action(self, controller, committed):
        controller.drag_start("act")
        controller.drag_over("c", "card")
        assert controller.drop() == DropIntent("link_action", "act", "c")
        assert len(committed) == 1

    def test_column_drop_moves(self, controller, committed):
        controller.drag_start("c")
        controller.drag_over("col-2", "column")
        intent = controller.drop()
        assert intent == DropIntent("move_to_column", "c", "col-2")
        assert intent.parent_id is None

    def test_drop_twice_commits_once(self, controller, committed):
        controller.drag_start("x")
        controller.drag_over("y", "card")
        controller.drop()
        assert controller.drop() is None
        assert len(committed) == 1

    def test_snapshot_change_between_hover_and_drop(self, board, controller, committed):
        controller.drag_start("x")
        controller.drag_over("y", "card")
        # Someone else nests y under p before we let go.
        board.apply_event(events.card_linked("b1", "p", "y", LinkType.PARENT_OF))
        assert controller.drop() is None
        assert committed == []

    def test_commit_result_is_kept(self, board):
        controller = DragDropController(board, commit=lambda intent: {"ok": True, "intent": intent.action})
        controller.drag_start("x")
        controller.drag_over("col-9", "column")
        controller.drop()
        assert controller.last_result == {"ok": True, "intent": "move_to_column"}
