"""
Error taxonomy for card operations.

Services raise these; one exception handler in main.py renders them as
{"detail": message, "code": code} with the class's HTTP status. None of
them is transient, so nothing retries.
"""

from __future__ import annotations

from typing import Any

from cardgraph import types as cg
from cardgraph.types import Verdict


class RetroError(Exception):
    """Base class. Subclasses pin code and status_code."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# -- 404 ---------------------------------------------------------------------


class NotFound(RetroError):
    code = "NOT_FOUND"
    status_code = 404


class BoardNotFound(NotFound):
    code = "BOARD_NOT_FOUND"


class CardNotFound(NotFound):
    code = "CARD_NOT_FOUND"


class ReactionNotFound(NotFound):
    code = "REACTION_NOT_FOUND"


# -- 403 / 409 ---------------------------------------------------------------


class Forbidden(RetroError):
    code = "FORBIDDEN"
    status_code = 403


class BoardClosed(RetroError):
    code = "BOARD_CLOSED"
    status_code = 409


# -- 400 ---------------------------------------------------------------------


class ValidationError(RetroError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ColumnNotFound(ValidationError):
    code = "COLUMN_NOT_FOUND"


class TypeMismatchError(ValidationError):
    code = "TYPE_MISMATCH"


class CircularRelationshipError(RetroError):
    code = "CIRCULAR_RELATIONSHIP"
    status_code = 400


class SelfDropError(CircularRelationshipError):
    code = "SELF_DROP"


class HierarchyDepthError(RetroError):
    code = "HIERARCHY_DEPTH"
    status_code = 400


class AlreadyChildError(HierarchyDepthError):
    code = "ALREADY_CHILD"


# -- quota -------------------------------------------------------------------


class LimitReached(RetroError):
    code = "LIMIT_REACHED"
    status_code = 403


class CardLimitReached(LimitReached):
    code = "CARD_LIMIT_REACHED"


class ReactionLimitReached(LimitReached):
    code = "REACTION_LIMIT_REACHED"


_VERDICT_ERRORS: dict[str, type[RetroError]] = {
    cg.SELF_DROP: SelfDropError,
    cg.ALREADY_CHILD: AlreadyChildError,
    cg.HIERARCHY_DEPTH: HierarchyDepthError,
    cg.CIRCULAR_RELATIONSHIP: CircularRelationshipError,
    cg.TYPE_MISMATCH: TypeMismatchError,
    cg.CARD_NOT_FOUND: CardNotFound,
}


def error_for_verdict(verdict: Verdict) -> RetroError:
    """Turn a rejected rule-table verdict into the matching exception."""
    if verdict.ok:
        raise ValueError("verdict is not a rejection")
    error_cls = _VERDICT_ERRORS.get(verdict.code or "", ValidationError)
    return error_cls(verdict.reason or "Invalid relationship")
