"""
RetroPulse Card Graph — Shared Types

Data classes used across rules, snapshot, aggregation and drag-drop.
These are the contracts that bind the kernel together. Nothing in here
does IO.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------


class CardType(str, Enum):
    """Card kind, fixed at creation."""

    FEEDBACK = "feedback"
    ACTION = "action"


class LinkType(str, Enum):
    """The two relationship kinds between cards."""

    PARENT_OF = "parent_of"  # feedback -> feedback, one level deep
    LINKED_TO = "linked_to"  # action -> feedback, many to many


DropTargetKind = Literal["card", "column"]

SortMode = Literal["recency", "popularity"]
SortDirection = Literal["asc", "desc"]


# ---------------------------------------------------------------------------
# Rule violation codes (shared by server errors and client messages)
# ---------------------------------------------------------------------------

SELF_DROP = "SELF_DROP"
ALREADY_CHILD = "ALREADY_CHILD"
HIERARCHY_DEPTH = "HIERARCHY_DEPTH"
CIRCULAR_RELATIONSHIP = "CIRCULAR_RELATIONSHIP"
TYPE_MISMATCH = "TYPE_MISMATCH"
CARD_NOT_FOUND = "CARD_NOT_FOUND"
NOT_DRAGGING = "NOT_DRAGGING"

VIOLATION_CODES: set[str] = {
    SELF_DROP,
    ALREADY_CHILD,
    HIERARCHY_DEPTH,
    CIRCULAR_RELATIONSHIP,
    TYPE_MISMATCH,
    CARD_NOT_FOUND,
    NOT_DRAGGING,
}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class CardNode:
    """
    One card as seen by the kernel.

    Only the fields the rule table, aggregation and ordering need. Built from
    store records on the server and from event payloads on clients.
    """

    id: str
    card_type: CardType
    board_id: str = ""
    column_id: str = ""
    parent_card_id: str | None = None
    direct_reaction_count: int = 0
    aggregated_reaction_count: int = 0
    linked_feedback_ids: list[str] = field(default_factory=list)
    created_at: str = ""
    is_anonymous: bool = False
    created_by_hash: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "card_type": self.card_type.value,
            "board_id": self.board_id,
            "column_id": self.column_id,
            "parent_card_id": self.parent_card_id,
            "direct_reaction_count": self.direct_reaction_count,
            "aggregated_reaction_count": self.aggregated_reaction_count,
            "linked_feedback_ids": list(self.linked_feedback_ids),
            "created_at": self.created_at,
            "is_anonymous": self.is_anonymous,
            "created_by_hash": self.created_by_hash,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CardNode:
        created_at = d.get("created_at", "")
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()
        return cls(
            id=str(d["id"]),
            card_type=CardType(d["card_type"]),
            board_id=str(d.get("board_id", "")),
            column_id=d.get("column_id", ""),
            parent_card_id=d.get("parent_card_id"),
            direct_reaction_count=d.get("direct_reaction_count", 0),
            aggregated_reaction_count=d.get("aggregated_reaction_count", 0),
            linked_feedback_ids=list(d.get("linked_feedback_ids") or []),
            created_at=created_at or "",
            is_anonymous=d.get("is_anonymous", False),
            created_by_hash=d.get("created_by_hash", ""),
        )

    @classmethod
    def from_record(cls, record: Any) -> CardNode:
        """Build from any object exposing the card attributes (e.g. a pydantic Card)."""
        created_at = getattr(record, "created_at", "")
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()
        return cls(
            id=str(record.id),
            card_type=CardType(record.card_type),
            board_id=str(record.board_id),
            column_id=record.column_id,
            parent_card_id=record.parent_card_id,
            direct_reaction_count=record.direct_reaction_count,
            aggregated_reaction_count=record.aggregated_reaction_count,
            linked_feedback_ids=list(record.linked_feedback_ids),
            created_at=created_at or "",
            is_anonymous=getattr(record, "is_anonymous", False),
            created_by_hash=getattr(record, "created_by_hash", ""),
        )


@dataclass(frozen=True)
class Verdict:
    """
    Result of running the relationship rule table.
    Never raises. `code` is one of VIOLATION_CODES when rejected.
    """

    ok: bool
    code: str | None = None
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def allow(cls) -> Verdict:
        return cls(ok=True)

    @classmethod
    def deny(cls, code: str, reason: str) -> Verdict:
        return cls(ok=False, code=code, reason=reason)


@dataclass(frozen=True)
class AggregateDrift:
    """A card whose recorded aggregate differs from direct + children's direct."""

    card_id: str
    recorded: int
    expected: int


@dataclass
class BoardEvent:
    """A logical board event. Transport agnostic."""

    type: str
    board_id: str
    payload: dict[str, Any]
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "board_id": self.board_id,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> BoardEvent:
        return cls(
            type=d["type"],
            board_id=d["board_id"],
            payload=d.get("payload", {}),
            timestamp=d.get("timestamp", ""),
        )


def now_iso() -> str:
    return datetime.now(UTC).isoformat()
