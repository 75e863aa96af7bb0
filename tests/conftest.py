"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file database. Request handlers and the
booking store open separate sessions on it, the same way they share the
Postgres pool in production.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["OPENAI_API_KEY"] = ""

from contextlib import asynccontextmanager  # noqa: E402
from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402

from soultrip.main import app  # noqa: E402
from soultrip.api.deps import get_booking_store  # noqa: E402
from soultrip.db.base import Base  # noqa: E402
from soultrip.db.session import get_db  # noqa: E402
from soultrip.core.security import create_access_token, hash_password  # noqa: E402
from soultrip.infrastructure.sql_booking_store import SqlBookingStore  # noqa: E402
from soultrip.models.tour import Tour, TourStatus  # noqa: E402
from soultrip.models.user import User, UserRole  # noqa: E402


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh database file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'soultrip_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def booking_store(session_factory) -> SqlBookingStore:
    return SqlBookingStore(session_factory)


@pytest_asyncio.fixture
async def soft_cancel_store(session_factory) -> SqlBookingStore:
    """Store whose access policy rejects deletes."""
    return SqlBookingStore(session_factory, allow_delete=False)


@asynccontextmanager
async def _client_for(session_factory, store: SqlBookingStore):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_store] = lambda: store

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(session_factory, booking_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client backed by the test database, hard-delete cancellation."""
    async with _client_for(session_factory, booking_store) as ac:
        yield ac


@pytest_asyncio.fixture
async def soft_cancel_client(session_factory, soft_cancel_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose store forbids deletes, so cancellations are soft."""
    async with _client_for(session_factory, soft_cancel_store) as ac:
        yield ac


async def _create_user(db: AsyncSession, email: str, full_name: str, role: UserRole) -> User:
    user = User(
        email=email,
        full_name=full_name,
        role=role.value,
        hashed_password=hash_password("testpassword123"),
    )
    db.add(user)
    await db.commit()
    return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def participant(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "maya@example.com", "Maya Traveller", UserRole.PARTICIPANT)


@pytest_asyncio.fixture
async def second_participant(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "leo@example.com", "Leo Wanderer", UserRole.PARTICIPANT)


@pytest_asyncio.fixture
async def third_participant(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "ana@example.com", "Ana Seeker", UserRole.PARTICIPANT)


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "guide@example.com", "Ravi Guide", UserRole.ORGANIZER)


@pytest_asyncio.fixture
async def participant_headers(participant: User) -> dict:
    return _headers(participant)


@pytest_asyncio.fixture
async def second_participant_headers(second_participant: User) -> dict:
    return _headers(second_participant)


@pytest_asyncio.fixture
async def third_participant_headers(third_participant: User) -> dict:
    return _headers(third_participant)


@pytest_asyncio.fixture
async def organizer_headers(organizer: User) -> dict:
    return _headers(organizer)


async def _create_tour(db: AsyncSession, organizer: User, **overrides) -> Tour:
    start = date.today() + timedelta(days=60)
    values = dict(
        organizer_id=organizer.id,
        organizer_name=organizer.full_name,
        title="Himalayan Silence Retreat",
        description="Ten days of walking meditation",
        start_date=start,
        end_date=start + timedelta(days=10),
        price=Decimal("1450.00"),
        currency="USD",
        max_participants=2,
        status=TourStatus.PUBLISHED.value,
        country="nepal",
        difficulty="moderate",
    )
    values.update(overrides)
    tour = Tour(**values)
    db.add(tour)
    await db.commit()
    return tour


@pytest_asyncio.fixture
async def published_tour(db_session: AsyncSession, organizer: User) -> Tour:
    """Published tour with two places."""
    return await _create_tour(db_session, organizer)


@pytest_asyncio.fixture
async def draft_tour(db_session: AsyncSession, organizer: User) -> Tour:
    return await _create_tour(
        db_session,
        organizer,
        title="Unannounced Desert Walk",
        status=TourStatus.DRAFT.value,
        country="morocco",
        max_participants=8,
    )


@pytest.fixture
def make_tour(db_session: AsyncSession, organizer: User):
    """Factory for extra tours in listing tests."""

    async def _make(**overrides) -> Tour:
        return await _create_tour(db_session, organizer, **overrides)

    return _make
