"""
Test fixtures for DecisionCore tests.

Provides:
- A controllable clock
- In-memory and SQLite-backed card stores
- A DecisionCardService wired with a recording notification subscriber
- An httpx client against the FastAPI app
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from decisioncore.config import Settings
from decisioncore.db import models  # noqa: F401  register all models
from decisioncore.db.engine import Base
from decisioncore.db.repositories import SqlCardStore
from decisioncore.decisions.lifecycle import DecisionCardService
from decisioncore.decisions.notifications import NotificationEmitter, RecordingSubscriber
from decisioncore.decisions.store import InMemoryCardStore
from decisioncore.main import create_app
from tests.factories import TENANT, FakeClock

# In-memory SQLite for fast, isolated tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryCardStore:
    return InMemoryCardStore()


@pytest.fixture
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def service(store, clock, recorder) -> DecisionCardService:
    emitter = NotificationEmitter()
    emitter.subscribe(recorder)
    return DecisionCardService(store=store, emitter=emitter, clock=clock)


# ── SQL store ────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    eng = create_async_engine(TEST_DB_URL, echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def sql_store(session_factory) -> SqlCardStore:
    return SqlCardStore(session_factory)


# ── HTTP client ──────────────────────────────────────────────────────────


@pytest.fixture
def app_store() -> InMemoryCardStore:
    return InMemoryCardStore()


@pytest_asyncio.fixture
async def client(app_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against a fresh app backed by an in-memory store."""
    app = create_app(app_settings=Settings(CARD_STORE="memory"), store=app_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def headers() -> dict[str, str]:
    return {"X-Tenant-ID": TENANT, "X-User-ID": "cfo@example.com"}
