"""
RetroPulse Card Graph — Relationship Rules

Pure function: (snapshot, proposed drop) → Verdict

One rule table, used by the authoritative service before it links cards and
by the drag-drop validator for hover feedback. Never raises for a bad
proposal; the caller decides what a rejection means.

Orientation: validate_drop() speaks in drag terms. The dragged card is the
source; for feedback → feedback the source would become the CHILD of the
target. validate_link() speaks in service terms, where the source of a
parent_of link is the PARENT, and maps onto validate_drop().
"""

from __future__ import annotations

from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import (
    ALREADY_CHILD,
    CARD_NOT_FOUND,
    CIRCULAR_RELATIONSHIP,
    HIERARCHY_DEPTH,
    SELF_DROP,
    TYPE_MISMATCH,
    CardType,
    DropTargetKind,
    LinkType,
    Verdict,
)

# Human-readable reasons. The service uses these verbatim as error messages.
REASONS: dict[str, str] = {
    SELF_DROP: "Cannot drop card on itself",
    ALREADY_CHILD: "Card already has a parent",
    HIERARCHY_DEPTH: "Target card is already a child. Only 1-level hierarchy allowed",
    CIRCULAR_RELATIONSHIP: "Circular relationship detected",
    CARD_NOT_FOUND: "Target card not found",
}

_PARENT_CANNOT_BE_CHILD = "A parent card cannot become a child (1-level hierarchy limit)"
_CORRUPT_CHAIN = "Existing parent chain is corrupt"
_FEEDBACK_ON_ACTION = "Cannot drop feedback on action card"
_ACTION_ON_ACTION = "Cannot link action to action"

# Drag wording → link wording (the parent is the link source, not the drop target).
_LINK_REASONS: dict[str, str] = {
    REASONS[ALREADY_CHILD]: "Target card already has a parent",
    REASONS[HIERARCHY_DEPTH]: "A child card cannot become a parent (1-level hierarchy limit)",
}


# ---------------------------------------------------------------------------
# Ancestry
# ---------------------------------------------------------------------------


def ancestor_chain(snapshot: BoardSnapshot, start_id: str) -> tuple[list[str], bool]:
    """
    Walk parent pointers from start_id (inclusive).

    Returns (chain, corrupt). corrupt is True when an id recurs, i.e. the
    stored data already contains a cycle; the walk stops there.
    """
    chain: list[str] = []
    visited: set[str] = set()
    current: str | None = start_id
    while current is not None:
        if current in visited:
            return chain, True
        visited.add(current)
        chain.append(current)
        current = snapshot.parent_of(current)
    return chain, False


def would_create_cycle(snapshot: BoardSnapshot, parent_id: str, child_id: str) -> bool:
    """
    True if making child_id a child of parent_id closes a loop.

    Fails closed: a pre-existing cycle in the parent's chain counts as
    circular even when child_id is not on it.
    """
    chain, corrupt = ancestor_chain(snapshot, parent_id)
    return child_id in chain or corrupt


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


def validate_drop(
    snapshot: BoardSnapshot,
    source_id: str,
    source_type: CardType,
    target_id: str,
    target_kind: DropTargetKind,
) -> Verdict:
    """
    Decide whether dropping source_id onto target_id is structurally legal.

    column target            → ok (pure move)
    source == target         → SELF_DROP
    feedback → feedback      → ok unless ALREADY_CHILD / HIERARCHY_DEPTH / CIRCULAR_RELATIONSHIP
    action   → feedback      → ok (set insert, idempotent)
    feedback → action        → TYPE_MISMATCH
    action   → action        → TYPE_MISMATCH
    """
    if target_kind == "column":
        return Verdict.allow()

    if source_id == target_id:
        return Verdict.deny(SELF_DROP, REASONS[SELF_DROP])

    target = snapshot.get(target_id)
    if target is None:
        return Verdict.deny(CARD_NOT_FOUND, REASONS[CARD_NOT_FOUND])

    source_type = CardType(source_type)
    match (source_type, target.card_type):
        case (CardType.FEEDBACK, CardType.FEEDBACK):
            return _validate_nesting(snapshot, child_id=source_id, parent_id=target_id)
        case (CardType.ACTION, CardType.FEEDBACK):
            return Verdict.allow()
        case (CardType.FEEDBACK, CardType.ACTION):
            return Verdict.deny(TYPE_MISMATCH, _FEEDBACK_ON_ACTION)
        case (CardType.ACTION, CardType.ACTION):
            return Verdict.deny(TYPE_MISMATCH, _ACTION_ON_ACTION)
    raise AssertionError(f"unhandled card types: {source_type}, {target.card_type}")


def _validate_nesting(snapshot: BoardSnapshot, *, child_id: str, parent_id: str) -> Verdict:
    if snapshot.has_parent(child_id):
        return Verdict.deny(ALREADY_CHILD, REASONS[ALREADY_CHILD])
    if snapshot.has_parent(parent_id):
        return Verdict.deny(HIERARCHY_DEPTH, REASONS[HIERARCHY_DEPTH])
    if snapshot.has_children(child_id):
        return Verdict.deny(HIERARCHY_DEPTH, _PARENT_CANNOT_BE_CHILD)

    chain, corrupt = ancestor_chain(snapshot, parent_id)
    if child_id in chain:
        return Verdict.deny(CIRCULAR_RELATIONSHIP, REASONS[CIRCULAR_RELATIONSHIP])
    if corrupt:
        return Verdict.deny(CIRCULAR_RELATIONSHIP, _CORRUPT_CHAIN)
    return Verdict.allow()


def validate_link(
    snapshot: BoardSnapshot,
    source_id: str,
    target_id: str,
    link_type: LinkType,
) -> Verdict:
    """
    Service-side entry point. For parent_of the source becomes the parent of
    the target; for linked_to the source (action) addresses the target
    (feedback).
    """
    link_type = LinkType(link_type)
    if source_id == target_id:
        return Verdict.deny(SELF_DROP, "A card cannot be linked to itself")

    source = snapshot.get(source_id)
    target = snapshot.get(target_id)
    if source is None or target is None:
        return Verdict.deny(CARD_NOT_FOUND, "Card not found")

    if link_type is LinkType.PARENT_OF:
        if source.card_type is not CardType.FEEDBACK or target.card_type is not CardType.FEEDBACK:
            return Verdict.deny(TYPE_MISMATCH, "Both cards must be feedback cards for parent-child linking")
        verdict = validate_drop(snapshot, target_id, CardType.FEEDBACK, source_id, "card")
        if not verdict.ok and verdict.reason in _LINK_REASONS:
            return Verdict.deny(verdict.code, _LINK_REASONS[verdict.reason])
        return verdict

    if source.card_type is not CardType.ACTION:
        return Verdict.deny(TYPE_MISMATCH, "Source card must be an action card")
    return validate_drop(snapshot, source_id, CardType.ACTION, target_id, "card")
