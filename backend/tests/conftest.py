"""
Pytest fixtures for test database, client, and authentication.

Every test gets a fresh in-memory SQLite database; the app's `get_db`
dependency is overridden to use the test session.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import create_access_token, hash_password
from app.models.user import User
from app.models.flight import Flight

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# 2030-01-07 is a Monday (weekday index 1)
DEPARTURE = datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables on a private in-memory database, yield a session, then drop it."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db_session: AsyncSession, email: str, username: str) -> User:
    user = User(
        email=email,
        username=username,
        hashed_password=hash_password("testpassword123"),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


async def make_flight(db_session: AsyncSession, **overrides) -> Flight:
    values = dict(
        airline="Test Airways",
        airline_code="TA",
        flight_number=101,
        origin="DEL",
        destination="BOM",
        price=100.0,
        seat_capacity=100,
        available_seats=100,
        departure=DEPARTURE,
        arrival=DEPARTURE + timedelta(hours=2, minutes=10),
        duration_minutes=130,
        operational_days=[1, 3, 5],
    )
    values.update(overrides)
    flight = Flight(**values)
    db_session.add(flight)
    await db_session.commit()
    await db_session.refresh(flight)
    return flight


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "test@example.com", "testuser")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", "otheruser")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest_asyncio.fixture
async def test_flight(db_session: AsyncSession) -> Flight:
    """A flight with 100 seats at 100.0 each."""
    return await make_flight(db_session)


@pytest_asyncio.fixture
async def small_flight(db_session: AsyncSession) -> Flight:
    """Price 100, two seats left."""
    return await make_flight(
        db_session, flight_number=202, seat_capacity=2, available_seats=2
    )


@pytest_asyncio.fixture
async def sold_out_flight(db_session: AsyncSession) -> Flight:
    return await make_flight(
        db_session, flight_number=303, seat_capacity=50, available_seats=0
    )


def passenger(seat=None, first_name="Ada", last_name="Lovelace", age=36, gender="Female") -> dict:
    data = {"first_name": first_name, "last_name": last_name, "age": age, "gender": gender}
    if seat is not None:
        data["seat_number"] = seat
    return data


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls the search cache makes."""

    def __init__(self):
        self.store = {}
        self.before_delete = None

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        if self.before_delete:
            self.before_delete()
        self.store.pop(key, None)

    async def scan_iter(self, match="*", count=None):
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def info(self, section=None):
        return {"keyspace_hits": 0, "keyspace_misses": 0}


@pytest_asyncio.fixture
async def fake_redis(monkeypatch) -> FakeRedis:
    """Search cache enabled, backed by a FakeRedis."""
    from app.services import cache_service

    fake = FakeRedis()

    async def get_fake_redis():
        return fake

    monkeypatch.setattr(cache_service, "get_redis", get_fake_redis)
    return fake
