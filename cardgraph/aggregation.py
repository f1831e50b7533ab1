"""
RetroPulse Card Graph — Aggregate Maths

The hot path keeps aggregates current with deltas. This module is the
correctness fallback: recompute every aggregate from children's direct
counts and report where the recorded value drifted.

    aggregated(P) == direct(P) + Σ direct(c) for c in children(P)
"""

from __future__ import annotations

from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import AggregateDrift


def expected_aggregate(snapshot: BoardSnapshot, card_id: str) -> int:
    """Own direct count plus direct children's direct counts. One level only."""
    card = snapshot.get(card_id)
    if card is None:
        raise KeyError(card_id)
    return card.direct_reaction_count + sum(c.direct_reaction_count for c in snapshot.children_of(card_id))


def expected_aggregates(snapshot: BoardSnapshot) -> dict[str, int]:
    totals = {card.id: card.direct_reaction_count for card in snapshot}
    for card in snapshot:
        if card.parent_card_id is not None and card.parent_card_id in totals:
            totals[card.parent_card_id] += card.direct_reaction_count
    return totals


def find_drift(snapshot: BoardSnapshot) -> list[AggregateDrift]:
    """Every card whose recorded aggregate is wrong, ordered by id."""
    expected = expected_aggregates(snapshot)
    drift = [
        AggregateDrift(card_id=card.id, recorded=card.aggregated_reaction_count, expected=expected[card.id])
        for card in snapshot
        if card.aggregated_reaction_count != expected[card.id]
    ]
    return sorted(drift, key=lambda d: d.card_id)


def depth_violations(snapshot: BoardSnapshot) -> list[str]:
    """Ids of children whose parent is itself a child (depth > 1)."""
    return sorted(
        card.id
        for card in snapshot
        if card.parent_card_id is not None and snapshot.has_parent(card.parent_card_id)
    )
