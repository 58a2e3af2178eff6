"""
Shared test fixtures.

Uses a throw-away SQLite file per test (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` lets several
sessions hold their own connections, which the race tests rely on.  The
production models are used as-is: the partial unique indexes compile to
SQLite's ``WHERE`` clause.
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.domain.entities import Identity, Location
from src.domain.enums import Role
from src.infrastructure.database import Base, unit_of_work
from src.infrastructure.models import ActorModel


# ── Sample actors / places ────────────────────────────────────────────

ASHA = Identity(actor_id=1, role=Role.PASSENGER)  # funded wallet
BEN = Identity(actor_id=2, role=Role.PASSENGER)  # empty wallet
CHITRA = Identity(actor_id=3, role=Role.PASSENGER)
RAVI = Identity(actor_id=4, role=Role.DRIVER)
SITA = Identity(actor_id=5, role=Role.DRIVER)

ACTORS = [
    (ASHA, "Asha", 1000.0),
    (BEN, "Ben", 0.0),
    (CHITRA, "Chitra", 500.0),
    (RAVI, "Ravi", 0.0),
    (SITA, "Sita", 0.0),
]

AIRPORT = Location("Kempegowda International Airport", 77.7063, 13.1986)
MG_ROAD = Location("MG Road Metro", 77.6070, 12.9756)
MYSURU = Location("Mysuru Palace", 76.6552, 12.3052)


def headers(identity: Identity) -> dict:
    return {"X-Actor-Id": str(identity.actor_id), "X-Actor-Role": identity.role.value}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables and sample actors, yield a session factory, then dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ridecore.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        for identity, name, wallet in ACTORS:
            session.add(
                ActorModel(
                    id=identity.actor_id,
                    name=name,
                    role=identity.role,
                    wallet_balance=wallet,
                )
            )
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def run(session_factory):
    """Run ``fn(session)`` in its own unit of work, like one API request."""

    async def _run(fn):
        async with unit_of_work(session_factory) as session:
            return await fn(session)

    return _run


@pytest_asyncio.fixture
async def actor(session_factory):
    """Fresh read of an actor row."""

    async def _actor(identity: Identity) -> ActorModel:
        async with session_factory() as session:
            return await session.get(ActorModel, identity.actor_id)

    return _actor


@pytest_asyncio.fixture
async def client(session_factory):
    """AsyncClient backed by the per-test SQLite database."""
    from src.api.app import create_app
    from src.api.dependencies import get_db
    from src.api.middleware import limiter

    async def _test_db():
        async with unit_of_work(session_factory) as session:
            yield session

    with (
        patch("src.workers.expiry.start_expiry_loop", new_callable=AsyncMock),
        patch("src.workers.expiry.stop_expiry_loop", new_callable=AsyncMock),
        patch.object(limiter, "enabled", False),
    ):
        app = create_app()
        app.dependency_overrides[get_db] = _test_db

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
