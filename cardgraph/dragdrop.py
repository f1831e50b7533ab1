"""
RetroPulse Card Graph — Drag-Drop Predictive Validator

Client-local state machine that re-runs the shared rule table against a
cached BoardSnapshot on every hover. No network, no blocking.

    IDLE → DRAGGING → HOVER_VALID | HOVER_INVALID → IDLE (cancel) | COMMITTED (drop)

A verdict here is a prediction. COMMITTED hands exactly one DropIntent to
the commit callback; the real outcome is whatever the server answers.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from cardgraph.rules import validate_drop
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import NOT_DRAGGING, CardType, DropTargetKind, Verdict


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVER_VALID = "hover_valid"
    HOVER_INVALID = "hover_invalid"
    COMMITTED = "committed"


DropAction = Literal["move_to_column", "link_parent_child", "link_action"]


@dataclass(frozen=True)
class DragItem:
    card_id: str
    card_type: CardType


@dataclass(frozen=True)
class DropTarget:
    target_id: str
    kind: DropTargetKind


@dataclass(frozen=True)
class DropIntent:
    """
    What a committed drop asks the server to do.

    move_to_column:     source_id moves to column target_id
    link_parent_child:  source_id (dragged) becomes a child of target_id
    link_action:        action source_id addresses feedback target_id
    """

    action: DropAction
    source_id: str
    target_id: str

    @property
    def parent_id(self) -> str | None:
        return self.target_id if self.action == "link_parent_child" else None

    @property
    def child_id(self) -> str | None:
        return self.source_id if self.action == "link_parent_child" else None


class DragDropController:
    """Single-threaded, synchronous. One controller per board view."""

    def __init__(self, snapshot: BoardSnapshot, commit: Callable[[DropIntent], Any] | None = None) -> None:
        self.snapshot = snapshot
        self._commit = commit
        self.state = DragState.IDLE
        self.item: DragItem | None = None
        self.target: DropTarget | None = None
        self.verdict: Verdict | None = None
        self.last_intent: DropIntent | None = None
        self.last_result: Any = None

    @property
    def is_dragging(self) -> bool:
        return self.state in (DragState.DRAGGING, DragState.HOVER_VALID, DragState.HOVER_INVALID)

    @property
    def drop_error(self) -> str | None:
        if self.verdict is None or self.verdict.ok:
            return None
        return self.verdict.reason

    def drag_start(self, card_id: str, card_type: CardType | None = None) -> None:
        """Enter DRAGGING. card_type defaults to the snapshot's record of the card."""
        if card_type is None:
            card = self.snapshot.get(card_id)
            if card is None:
                raise KeyError(card_id)
            card_type = card.card_type
        self.item = DragItem(card_id=card_id, card_type=CardType(card_type))
        self.target = None
        self.verdict = None
        self.state = DragState.DRAGGING

    def _evaluate(self, target_id: str, kind: DropTargetKind) -> Verdict:
        if self.item is None or not self.is_dragging:
            return Verdict.deny(NOT_DRAGGING, "No card is being dragged")
        return validate_drop(self.snapshot, self.item.card_id, self.item.card_type, target_id, kind)

    def drag_over(self, target_id: str, kind: DropTargetKind) -> Verdict:
        verdict = self._evaluate(target_id, kind)
        if verdict.code == NOT_DRAGGING:
            return verdict
        self.target = DropTarget(target_id=target_id, kind=kind)
        self.verdict = verdict
        self.state = DragState.HOVER_VALID if verdict.ok else DragState.HOVER_INVALID
        return verdict

    def can_drop_on(self, target_id: str, kind: DropTargetKind) -> bool:
        """Prediction only; does not move the state machine."""
        return self._evaluate(target_id, kind).ok

    def cancel(self) -> None:
        """Gesture ended without a drop."""
        self.state = DragState.IDLE
        self.item = None
        self.target = None
        self.verdict = None

    def drop(self) -> DropIntent | None:
        """
        Release over the current target.

        Valid hover → COMMITTED, commit callback runs once, intent returned.
        Anything else → IDLE, nothing committed.
        """
        if self.state is not DragState.HOVER_VALID or self.item is None or self.target is None:
            self.cancel()
            return None

        # The snapshot may have changed between hover and release.
        verdict = validate_drop(
            self.snapshot, self.item.card_id, self.item.card_type, self.target.target_id, self.target.kind
        )
        if not verdict.ok:
            self.cancel()
            return None

        intent = self._intent_for(self.item, self.target)
        if intent is None:
            self.cancel()
            return None

        self.state = DragState.COMMITTED
        self.last_intent = intent
        if self._commit is not None:
            self.last_result = self._commit(intent)
        return intent

    def _intent_for(self, item: DragItem, target: DropTarget) -> DropIntent | None:
        if target.kind == "column":
            return DropIntent("move_to_column", item.card_id, target.target_id)
        card = self.snapshot.get(target.target_id)
        if card is None:
            return None
        if item.card_type is CardType.FEEDBACK and card.card_type is CardType.FEEDBACK:
            return DropIntent("link_parent_child", item.card_id, target.target_id)
        if item.card_type is CardType.ACTION and card.card_type is CardType.FEEDBACK:
            return DropIntent("link_action", item.card_id, target.target_id)
        return None
