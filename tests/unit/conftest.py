"""
Shared fixtures for unit tests.
Uses an in-memory SQLite database for fast isolated testing.
"""
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from lending.core.security import hash_password
from lending.db.models import (
    Base, User, UserRole, Borrower, Item, Loan, Reservation, ReservationStatus,
)

PASSWORD = "borrowerpass1"
# bcrypt is slow; every factory-built account shares one hash.
PASSWORD_HASH = hash_password(PASSWORD)

TODAY = date(2025, 3, 10)


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """Provide a transactional database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ─── Helper factories ───────────────────────────────────────────


@pytest.fixture
def make_user():
    """Factory fixture to create User instances."""
    def _make(
        email: str = None,
        full_name: str = "Test User",
        role: UserRole = UserRole.MEMBER,
        is_active: bool = True,
        is_built_in: bool = False,
        hashed_password: str = PASSWORD_HASH,
    ) -> User:
        return User(
            id=str(uuid4()),
            email=email or f"user-{uuid4().hex[:8]}@test.com",
            hashed_password=hashed_password,
            full_name=full_name,
            role=role,
            is_active=is_active,
            is_built_in=is_built_in,
        )
    return _make


@pytest.fixture
def make_item():
    """Factory fixture to create Item instances."""
    def _make(
        title: str = "Test Item",
        total_copies: int = 1,
        available_copies: int = None,
    ) -> Item:
        return Item(
            id=str(uuid4()),
            title=title,
            total_copies=total_copies,
            available_copies=total_copies if available_copies is None else available_copies,
        )
    return _make


@pytest.fixture
def make_loan():
    """Factory fixture to create Loan instances."""
    def _make(
        borrower_id: str = None,
        item_id: str = None,
        start_date: date = TODAY,
        due_date: date = None,
        return_date: date = None,
        returned: bool = False,
        renewal_count: int = 0,
        reservation_id: str = None,
    ) -> Loan:
        return Loan(
            id=str(uuid4()),
            borrower_id=borrower_id or str(uuid4()),
            item_id=item_id or str(uuid4()),
            start_date=start_date,
            due_date=due_date or start_date + timedelta(days=15),
            return_date=return_date,
            returned=returned,
            renewal_count=renewal_count,
            reservation_id=reservation_id,
        )
    return _make


@pytest.fixture
def make_reservation():
    """Factory fixture to create Reservation instances."""
    def _make(
        item_id: str = None,
        borrower_id: str = None,
        status: ReservationStatus = ReservationStatus.WAITING,
        registered_at: datetime = None,
        active_deadline: date = None,
        id: str = None,
    ) -> Reservation:
        return Reservation(
            id=id or str(uuid4()),
            item_id=item_id or str(uuid4()),
            borrower_id=borrower_id or str(uuid4()),
            status=status,
            registered_at=registered_at or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
            active_deadline=active_deadline,
        )
    return _make


# ─── Persisted rows ─────────────────────────────────────────────


@pytest_asyncio.fixture
async def add_borrower(db_session, make_user):
    """Persist a borrower and the member account holding PASSWORD."""
    async def _add(full_name: str = "Test Borrower", is_active: bool = True) -> Borrower:
        account = make_user(full_name=full_name, is_active=is_active)
        db_session.add(account)
        await db_session.flush()
        borrower = Borrower(id=str(uuid4()), full_name=full_name, account_id=account.id)
        db_session.add(borrower)
        await db_session.flush()
        return borrower
    return _add


@pytest_asyncio.fixture
async def add_item(db_session, make_item):
    async def _add(**kwargs) -> Item:
        item = make_item(**kwargs)
        db_session.add(item)
        await db_session.flush()
        return item
    return _add


@pytest_asyncio.fixture
async def add_reservation(db_session, make_reservation):
    async def _add(item, borrower, minute: int = 0, **kwargs) -> Reservation:
        kwargs.setdefault(
            "registered_at", datetime(2025, 3, 1, 9, minute, tzinfo=timezone.utc)
        )
        reservation = make_reservation(item_id=item.id, borrower_id=borrower.id, **kwargs)
        db_session.add(reservation)
        await db_session.flush()
        return reservation
    return _add
