"""
Pytest configuration and fixtures for RetroPulse tests.

Service and route tests run against the in-memory container. Postgres
store tests skip unless DATABASE_URL is set.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from uuid import uuid4

# Set test environment variables before importing config
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("COOKIE_SECRET", "test-cookie-secret")
os.environ.setdefault("ADMIN_SECRET_KEY", "test-admin-secret")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from cardgraph.types import CardType  # noqa: E402
from retropulse.auth import create_jwt, hash_identity  # noqa: E402
from retropulse.container import Container, get_container, memory_container  # noqa: E402
from retropulse.main import app  # noqa: E402
from retropulse.models.board import Board, Column  # noqa: E402
from retropulse.models.card import Card, CreateCardRequest  # noqa: E402

ALICE = hash_identity("alice")
BOB = hash_identity("bob")
ADMIN = hash_identity("facilitator")


@pytest.fixture
def container() -> Container:
    """Fresh memory-backed stores and services for each test."""
    return memory_container()


def make_board(**overrides) -> Board:
    fields = {
        "id": str(uuid4()),
        "name": "Sprint 42 Retro",
        "columns": [
            Column(id="col-1", name="What went well"),
            Column(id="col-2", name="What to improve"),
            Column(id="col-3", name="Action items"),
        ],
        "admins": [ADMIN],
        "created_by_hash": ADMIN,
        "created_at": datetime.now(UTC),
    }
    fields.update(overrides)
    return Board(**fields)


@pytest_asyncio.fixture(loop_scope="session")
async def board(container) -> Board:
    b = make_board()
    await container.boards.put(b)
    await container.boards.set_alias(b.id, ALICE, "Alice")
    await container.boards.set_alias(b.id, BOB, "Bob")
    return b


@pytest_asyncio.fixture(loop_scope="session")
async def seed(container, board):
    """
    Create a card through the service, then set its direct count.

    Returns an async callable: await seed(CardType.FEEDBACK, direct=2).
    """

    async def _seed(
        card_type: CardType = CardType.FEEDBACK,
        *,
        creator: str = ALICE,
        direct: int = 0,
        column_id: str = "col-1",
        content: str = "Standups ran long",
    ) -> Card:
        card = await container.card_service.create_card(
            board.id,
            CreateCardRequest(column_id=column_id, content=content, card_type=card_type),
            creator,
        )
        if direct:
            await container.cards.adjust_counts(card.id, direct_delta=direct, aggregate_delta=direct)
        return await container.cards.get(card.id)

    return _seed


def session_cookie(subject: str) -> dict[str, str]:
    return {"session": create_jwt(subject)}


@pytest_asyncio.fixture(loop_scope="session")
async def client(container):
    """HTTP client over the app with the memory container installed."""
    app.dependency_overrides[get_container] = lambda: container
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
