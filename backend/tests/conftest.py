"""
PokeLend Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite +
       StaticPool, so all sessions share one connection) with real
       transactions, so commits and rollbacks behave as they do in production.

Fixture Hierarchy (all function-scoped):
    db_engine ─▶ session_factory ─▶ store ─▶ service ─▶ test_client
                        └──────────▶ seed (borrowers, items, clans, lists)
"""

import os

# Must run before any pokelend import: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from tenacity import wait_none

from pokelend.database import Base, get_db_session
from pokelend.models.borrower import Borrower
from pokelend.models.favorite import FavoriteList, favorite_list_items
from pokelend.models.history import HistoryEntry  # noqa: F401
from pokelend.models.item import Clan, Item, ItemStatus, clan_items
from pokelend.services.lending_service import LendingService, get_lending_service
from pokelend.services.storage import LendingStore


FROZEN_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    """LendingStore without backoff sleeps."""
    return LendingStore(session_factory, max_attempts=3, wait=wait_none())


@pytest.fixture
def frozen_now():
    return FROZEN_NOW


@pytest.fixture
def service(store, frozen_now):
    return LendingService(store, clock=lambda: frozen_now)


@pytest.fixture
def read_row(session_factory):
    """
    Reads one ORM row in a fresh session.

    Usage:
        item = await read_row(Item, seed.pikachu)
        assert item.version == 2
    """
    async def _read(model, row_id):
        async with session_factory() as session:
            return await session.get(model, row_id)

    return _read


# ══════════════════════════════════════════════════════════════════════════
# Seed Data
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def seed(session_factory):
    """
    Borrowers:
        ash   (credential "pikachu123")
        misty (credential "starmie")
    Items (all version 1):
        pikachu    available   clan raibolt
        charmander available   clan volcanic
        squirtle   available
        mewtwo     inactive
    Favorite lists:
        starters → pikachu, charmander, squirtle
        empty    → (no items)
    """
    ids = SimpleNamespace(
        ash=str(uuid.uuid4()),
        misty=str(uuid.uuid4()),
        pikachu=str(uuid.uuid4()),
        charmander=str(uuid.uuid4()),
        squirtle=str(uuid.uuid4()),
        mewtwo=str(uuid.uuid4()),
        raibolt=str(uuid.uuid4()),
        volcanic=str(uuid.uuid4()),
        starters=str(uuid.uuid4()),
        empty=str(uuid.uuid4()),
        ash_credential="pikachu123",
        misty_credential="starmie",
    )

    async with session_factory() as session:
        session.add_all([
            Borrower(id=ids.ash, name="Ash", email="ash@pallet.town", credential=ids.ash_credential),
            Borrower(id=ids.misty, name="Misty", email="misty@cerulean.gym", credential=ids.misty_credential),
            Item(id=ids.pikachu, type="Electric", name="Pikachu", held_item="Light Ball"),
            Item(id=ids.charmander, type="Fire", name="Charmander"),
            Item(id=ids.squirtle, type="Water", name="Squirtle"),
            Item(id=ids.mewtwo, type="Psychic", name="Mewtwo", status=ItemStatus.INACTIVE.value),
            Clan(id=ids.raibolt, name="raibolt", elements="Electric", color="#facc15"),
            Clan(id=ids.volcanic, name="volcanic", elements="Fire", color="#dc2626"),
            FavoriteList(id=ids.starters, name="Starters"),
            FavoriteList(id=ids.empty, name="Empty"),
        ])
        await session.flush()
        await session.execute(
            clan_items.insert(),
            [
                {"clan_id": ids.raibolt, "item_id": ids.pikachu},
                {"clan_id": ids.volcanic, "item_id": ids.charmander},
            ],
        )
        await session.execute(
            favorite_list_items.insert(),
            [
                {"list_id": ids.starters, "item_id": ids.pikachu},
                {"list_id": ids.starters, "item_id": ids.charmander},
                {"list_id": ids.starters, "item_id": ids.squirtle},
            ],
        )
        await session.commit()

    return ids


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(service, session_factory):
    """
    HTTPX client over ASGITransport, bound to the test database.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from pokelend.main import create_app

    app = create_app()

    async def _db_session():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_lending_service] = lambda: service
    app.dependency_overrides[get_db_session] = _db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
