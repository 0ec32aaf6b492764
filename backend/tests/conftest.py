"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own SQLite file, and every request gets its own
session, the same way requests behave against PostgreSQL in production.
"""

import os
import tempfile
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

# Settings are read once at import time; point them at test values first
os.environ["DATABASE_URL"] = (
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "eventbook_import.db")
)
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["RECONCILE_LEDGER_ON_STARTUP"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventbook.core.security import hash_password
from eventbook.db.base import Base
from eventbook.db.session import get_db
from eventbook.main import app
from eventbook.models.event import Event, EventCategory, EventStatus
from eventbook.models.reservation import Reservation, ReservationStatus
from eventbook.models.user import User, UserRole
from eventbook.services.authorization import issue_token

PASSWORD = "testpassword123"


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database per test: create tables, yield a session factory, dispose."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding data and inspecting state directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own test-database session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(session: AsyncSession, email: str, role: UserRole = UserRole.USER, **fields) -> User:
    user = User(
        name=fields.pop("name", email.split("@")[0]),
        email=email,
        hashed_password=hash_password(PASSWORD),
        role=role,
        **fields,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_event(session: AsyncSession, owner: User, **fields) -> Event:
    values = {
        "title": "Test Conference",
        "description": "A test event",
        "date": date.today() + timedelta(days=30),
        "time": "18:00",
        "venue": "Test Venue",
        "category": EventCategory.CONFERENCE,
        "capacity": 100,
        "reserved_count": 0,
        "price": Decimal("0"),
        "status": EventStatus.UPCOMING,
    }
    values.update(fields)
    event = Event(created_by=owner.id, **values)
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


async def make_reservation(
    session: AsyncSession,
    event: Event,
    user: User,
    status: ReservationStatus = ReservationStatus.ACTIVE,
) -> Reservation:
    """Insert a reservation row directly, without touching the event's counter."""
    reservation = Reservation(event_id=event.id, user_id=user.id, status=status.value)
    session.add(reservation)
    await session.commit()
    await session.refresh(reservation)
    return reservation


async def reload(session_factory, model, obj_id):
    """Read a row through a brand new session."""
    async with session_factory() as session:
        return await session.get(model, obj_id)


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token(user.id, user.role)}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com")


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await make_user(db_session, "organizer@example.com", UserRole.ORGANIZER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def organizer_headers(organizer: User) -> dict:
    return headers_for(organizer)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return headers_for(admin)


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, organizer: User) -> Event:
    """An upcoming event with 100 free spots, owned by `organizer`."""
    return await make_event(db_session, organizer)


@pytest_asyncio.fixture
async def small_event(db_session: AsyncSession, organizer: User) -> Event:
    """An upcoming event with only 2 spots."""
    return await make_event(db_session, organizer, title="Tiny Workshop", capacity=2,
                            category=EventCategory.WORKSHOP)
