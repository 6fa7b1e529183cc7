"""
Pytest fixtures for test database, client, users and events.

Each test gets a fresh SQLite file database (or TEST_DATABASE_URL when set)
with NullPool, so concurrent sessions in one test really are separate
connections.
"""

import os
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from campusgate.db.base import Base, utcnow
from campusgate.db.session import get_db
from campusgate.main import app
from campusgate.models.event import Event
from campusgate.models.user import User
from campusgate.services import ledger_service
from campusgate.services.gate_factory import get_admission_gate
from campusgate.services.interfaces.notifier import EventAnnouncement, Notifier
from campusgate.services.interfaces.optimistic_gate import OptimisticGate
from campusgate.services.notification_service import NotificationDispatcher, get_notifier

NORMAL_FORM = {
    "fields": [
        {"key": "roll", "label": "Roll number", "type": "text", "required": True, "order": 0},
        {"key": "tshirt", "label": "T-shirt", "type": "select", "required": False,
         "options": ["S", "M", "L"], "order": 1},
    ],
    "is_form_locked": False,
}

MERCH_CONFIG = {
    "variants": [
        {"sku": "HOODIE-M", "label": "Hoodie (M)", "stock": 3, "price_delta": "50"},
        {"sku": "HOODIE-L", "label": "Hoodie (L)", "stock": 1, "price_delta": "-600"},
    ],
    "per_participant_limit": 2,
}

VALID_ANSWERS = {"roll": "2021101001", "tshirt": "M"}


class RecordingNotifier(Notifier):
    """Captures announcements instead of posting them."""

    def __init__(self, fail: bool = False):
        self.sent: list[EventAnnouncement] = []
        self.fail = fail

    async def send(self, announcement: EventAnnouncement) -> None:
        if self.fail:
            raise RuntimeError("webhook down")
        self.sent.append(announcement)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables on a per-test database, drop them afterwards."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def seed_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for fixture data, kept apart from the session under test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client; every request gets its own session like in production."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_admission_gate():
        return OptimisticGate()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_admission_gate] = override_get_admission_gate
    app.dependency_overrides[get_notifier] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await dispatcher.drain()
    app.dependency_overrides.clear()


async def _add_user(db: AsyncSession, email: str, name: str, role: str, participant_type=None) -> User:
    user = User(email=email, name=name, role=role, participant_type=participant_type)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def organizer(seed_session: AsyncSession) -> User:
    return await _add_user(seed_session, "clubs@example.edu", "Coding Club", "organizer")


@pytest_asyncio.fixture
async def other_organizer(seed_session: AsyncSession) -> User:
    return await _add_user(seed_session, "music@example.edu", "Music Club", "organizer")


@pytest_asyncio.fixture
async def admin(seed_session: AsyncSession) -> User:
    return await _add_user(seed_session, "admin@example.edu", "Admin", "admin")


@pytest_asyncio.fixture
async def participant(seed_session: AsyncSession) -> User:
    return await _add_user(seed_session, "student@example.edu", "Student", "participant", "iiit")


@pytest_asyncio.fixture
async def outsider(seed_session: AsyncSession) -> User:
    return await _add_user(seed_session, "guest@example.com", "Guest", "participant", "non-iiit")


@pytest.fixture
def make_participants(seed_session: AsyncSession):
    """Factory for n extra participants."""

    async def _make(n: int, participant_type: str = "iiit") -> list[User]:
        users = [
            User(email=f"p{i}@example.edu", name=f"P{i}", role="participant", participant_type=participant_type)
            for i in range(n)
        ]
        seed_session.add_all(users)
        await seed_session.commit()
        return users

    return _make


@pytest.fixture
def make_event(seed_session: AsyncSession, organizer: User):
    """
    Factory for events stored directly in a given status.

    Published events get their ledger rows as publishing would create them.
    """

    async def _make(
        event_type: str = "NORMAL",
        status: str = "PUBLISHED",
        reg_limit: Optional[int] = 5,
        eligibility: str = "all",
        reg_fee: str = "0",
        starts_in: timedelta = timedelta(days=2),
        duration: timedelta = timedelta(hours=6),
        deadline_before_start: timedelta = timedelta(days=1),
        merch_config: Optional[dict] = None,
    ) -> Event:
        start = utcnow() + starts_in
        event = Event(
            organizer_id=organizer.id,
            name=f"{event_type.title()} Event",
            description="",
            type=event_type,
            status=status,
            eligibility=eligibility,
            reg_fee=Decimal(reg_fee),
            reg_deadline=start - deadline_before_start,
            start_date=start,
            end_date=start + duration,
            reg_limit=reg_limit if event_type == "NORMAL" else None,
            form_schema=NORMAL_FORM if event_type == "NORMAL" else None,
            merch_config=(merch_config or MERCH_CONFIG) if event_type == "MERCH" else None,
        )
        seed_session.add(event)
        await seed_session.flush()
        if status != "DRAFT":
            await ledger_service.open_ledger(seed_session, event)
        await seed_session.commit()
        await seed_session.refresh(event)
        return event

    return _make


@pytest_asyncio.fixture
async def normal_event(make_event) -> Event:
    """Published free NORMAL event with 5 slots, registration open."""
    return await make_event()


@pytest_asyncio.fixture
async def merch_event(make_event) -> Event:
    """Published MERCH event, base price 499."""
    return await make_event(event_type="MERCH", reg_fee="499")


@pytest_asyncio.fixture
async def ongoing_event(make_event) -> Event:
    """Published NORMAL event whose dates contain now (registration closed)."""
    return await make_event(
        starts_in=timedelta(hours=-1),
        duration=timedelta(hours=3),
        deadline_before_start=timedelta(hours=1),
    )
