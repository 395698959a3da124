"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own SQLite database file, so two sessions opened in the
same test really contend for the write lock the way two requests would.
Fixtures write through short-lived sessions and hand back ids; tests open
fresh sessions to read results.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./boxoffice-dev.db")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///./boxoffice-dev.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ["NOTIFICATION_BACKEND"] = "log"
os.environ["RESERVATION_RETRY_BASE_DELAY"] = "0"

from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.main import app
from boxoffice.db.base import Base
from boxoffice.db.session import create_engine, create_session_factory, get_db
from boxoffice.core.security import create_access_token, hash_password
from boxoffice.models import Event, Payment, Performance, TicketType, User, Venue, VenueRow, VenueSection
from boxoffice.schemas.order import CustomerDetails, SeatRequest
from boxoffice.services.notification_service import close_dispatcher


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh database file and yield a session factory for it."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture(autouse=True)
async def drain_notifications():
    yield
    await close_dispatcher(timeout=1)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test database."""

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


async def add_row(session_factory, obj) -> int:
    async with session_factory() as session:
        session.add(obj)
        await session.commit()
        return obj.id


async def load(session_factory, model, row_id):
    """Read a row through a fresh session."""
    async with session_factory() as session:
        return await session.get(model, row_id)


def bearer(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


@pytest_asyncio.fixture
async def test_user(session_factory) -> int:
    """Create a customer and return its id."""
    return await add_row(session_factory, User(
        email="test@example.com",
        username="testuser",
        hashed_password=hash_password("testpassword123"),
        first_name="Test",
        last_name="User",
        role="customer",
    ))


@pytest_asyncio.fixture
async def other_user(session_factory) -> int:
    return await add_row(session_factory, User(
        email="other@example.com",
        username="otheruser",
        hashed_password=hash_password("otherpassword123"),
        role="customer",
    ))


@pytest_asyncio.fixture
async def organizer(session_factory) -> int:
    return await add_row(session_factory, User(
        email="organizer@example.com",
        username="organizer",
        hashed_password=hash_password("organizerpass123"),
        role="organizer",
    ))


@pytest_asyncio.fixture
async def other_organizer(session_factory) -> int:
    """An organizer who does not run test_event."""
    return await add_row(session_factory, User(
        email="rival@example.com",
        username="rival",
        hashed_password=hash_password("rivalpassword123"),
        role="organizer",
    ))


@pytest_asyncio.fixture
async def admin(session_factory) -> int:
    return await add_row(session_factory, User(
        email="admin@example.com",
        username="admin",
        hashed_password=hash_password("adminpassword123"),
        role="admin",
    ))


@pytest_asyncio.fixture
async def auth_headers(test_user: int) -> dict:
    """Authorization headers with Bearer token for the customer."""
    return bearer(test_user)


@pytest_asyncio.fixture
async def organizer_headers(organizer: int) -> dict:
    return bearer(organizer)


@pytest_asyncio.fixture
async def admin_headers(admin: int) -> dict:
    return bearer(admin)


@pytest_asyncio.fixture
async def test_event(session_factory, organizer: int) -> int:
    return await add_row(session_factory, Event(
        title="Test Concert",
        description="A test event",
        category="music",
        location="Test Venue",
        organizer_id=organizer,
        is_published=True,
    ))


@pytest_asyncio.fixture
async def test_venue(session_factory) -> int:
    """ORCH holds rows A and B of 10 seats; BALC holds row A of 5 seats."""
    return await add_row(session_factory, Venue(
        name="Test Hall",
        street="1 Main St",
        city="Toronto",
        state="ON",
        zip_code="M5V 2T6",
        capacity=40,
        sections=[
            VenueSection(name="ORCH", capacity=20, position=0, rows=[
                VenueRow(name="A", seats=10, position=0),
                VenueRow(name="B", seats=10, position=1),
            ]),
            VenueSection(name="BALC", capacity=5, price_category="economy", position=1, rows=[
                VenueRow(name="A", seats=5, position=0),
            ]),
        ],
    ))


@pytest_asyncio.fixture
async def venue_event(session_factory, organizer: int, test_venue: int) -> int:
    return await add_row(session_factory, Event(
        title="Hall Recital",
        category="music",
        venue_id=test_venue,
        is_published=True,
        organizer_id=organizer,
    ))


async def add_performance(
    session_factory,
    event_id: int,
    ticket_types: list[tuple[str, str, int]],
    total_capacity: int | None = None,
    **fields,
) -> int:
    """Insert a performance with (name, price, count) ticket types; returns its id."""
    allocated = sum(count for _, _, count in ticket_types)
    starts_at = datetime.now(timezone.utc) + timedelta(days=30)
    return await add_row(session_factory, Performance(
        event_id=event_id,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=2),
        total_capacity=total_capacity if total_capacity is not None else allocated,
        available_tickets=allocated,
        is_sold_out=allocated == 0,
        ticket_types=[
            TicketType(name=name, price=Decimal(price), available_count=count, position=i)
            for i, (name, price, count) in enumerate(ticket_types)
        ],
        **fields,
    ))


@pytest_asyncio.fixture
async def test_performance(session_factory, test_event: int) -> int:
    """100 seats: 80 Standard at 50.00 and 20 VIP at 120.00."""
    return await add_performance(
        session_factory, test_event, [("Standard", "50.00", 80), ("VIP", "120.00", 20)]
    )


@pytest_asyncio.fixture
async def last_seat_performance(session_factory, test_event: int) -> int:
    return await add_performance(session_factory, test_event, [("Standard", "50.00", 1)])


@pytest_asyncio.fixture
async def venue_performance(session_factory, venue_event: int) -> int:
    return await add_performance(session_factory, venue_event, [("Standard", "50.00", 25)])


@pytest.fixture
def make_payment(session_factory):
    """Factory: make_payment(customer_id, amount="100.00", status="completed") -> id."""

    async def _make(customer_id: int, amount: str = "100.00", status: str = "completed") -> int:
        return await add_row(session_factory, Payment(
            customer_id=customer_id,
            amount=Decimal(amount),
            currency="USD",
            method="credit_card",
            status=status,
            card_last4="4242",
        ))

    return _make


@pytest.fixture
def customer_details() -> CustomerDetails:
    return CustomerDetails(first_name="Test", last_name="User", email="test@example.com")


def seat(section: str | None, row: str | None, number: str | None, category: str = "Standard", **kw) -> SeatRequest:
    return SeatRequest(category=category, section=section, row=row, seat_number=number, **kw)
