"""
RetroPulse Card Graph — the pure relationship kernel.

Shared by the authoritative service and by clients that keep a local board
snapshot:
  rules        — the single rule table for links and drops
  snapshot     — id-keyed board read model, folded from events
  aggregation  — aggregate recompute and drift detection
  events       — board event constructors
  dragdrop     — predictive drag-drop state machine
"""

from cardgraph.aggregation import expected_aggregate, expected_aggregates, find_drift
from cardgraph.dragdrop import DragDropController, DragState, DropIntent
from cardgraph.rules import validate_drop, validate_link, would_create_cycle
from cardgraph.snapshot import BoardSnapshot
from cardgraph.types import AggregateDrift, BoardEvent, CardNode, CardType, LinkType, Verdict

__all__ = [
    "AggregateDrift",
    "BoardEvent",
    "BoardSnapshot",
    "CardNode",
    "CardType",
    "DragDropController",
    "DragState",
    "DropIntent",
    "LinkType",
    "Verdict",
    "expected_aggregate",
    "expected_aggregates",
    "find_drift",
    "validate_drop",
    "validate_link",
    "would_create_cycle",
]
