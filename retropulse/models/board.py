"""Board models. Boards are owned elsewhere; the card engine only reads them."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class Column(BaseModel):
    id: str
    name: str
    color: str | None = None


class Board(BaseModel):
    """Represents a row in the boards table."""

    id: str
    name: str
    columns: list[Column] = Field(default_factory=list)
    state: Literal["active", "closed"] = "active"
    card_limit_per_user: int | None = None
    reaction_limit_per_user: int | None = None
    admins: list[str] = Field(default_factory=list)
    created_by_hash: str
    created_at: datetime
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    def has_column(self, column_id: str) -> bool:
        return any(col.id == column_id for col in self.columns)

    def is_admin(self, identity: str) -> bool:
        return identity in self.admins
