"""
Shared fixtures for functional tests.
Uses httpx.AsyncClient against the real FastAPI app with an in-memory SQLite DB.
"""
from datetime import date, datetime, time, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from lending.db.models import Base, User, UserRole
from lending.core.security import hash_password
from lending.db import session as db_session_module
from lending.main import app

BORROWER_PASSWORD = "readerpass1"


# ─── DB override ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine for functional testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

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
async def test_session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(test_session_factory):
    """Provide an httpx.AsyncClient with DB overridden to use the test DB."""

    async def override_get_db():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[db_session_module.get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Clock ──────────────────────────────────────────────────────

class FrozenClock:
    """Calendar date seen by the services; move it with ``clock.today = ...``."""

    def __init__(self, today: date):
        self.today = today

    def now(self) -> datetime:
        return datetime.combine(self.today, time(12, 0), tzinfo=timezone.utc)


@pytest.fixture
def clock():
    frozen = FrozenClock(date(2025, 3, 10))
    with patch("lending.core.clock.utcnow", side_effect=lambda: frozen.now()), patch(
        "lending.services.reservation.utcnow", side_effect=lambda: frozen.now()
    ):
        yield frozen


# ─── Auth helpers ───────────────────────────────────────────────

async def _staff_token(client, session_factory, role: UserRole, password: str) -> dict:
    async with session_factory() as session:
        user = User(
            id=str(uuid4()),
            email=f"{role.value}-{uuid4().hex[:6]}@test.com",
            hashed_password=hash_password(password),
            full_name=f"Test {role.value.title()}",
            role=role,
            is_built_in=False,
            is_active=True,
        )
        session.add(user)
        await session.commit()

    resp = await client.post(
        "/api/v1/auth/login",
        data={"username": user.email, "password": password},
    )
    assert resp.status_code == 200
    return {"id": user.id, "email": user.email, "token": resp.json()["access_token"], "role": role.value}


@pytest_asyncio.fixture
async def admin_user(client: AsyncClient, test_session_factory):
    """Create an admin directly in DB and log in."""
    return await _staff_token(client, test_session_factory, UserRole.ADMIN, "adminpass123")


@pytest_asyncio.fixture
async def librarian_user(client: AsyncClient, test_session_factory):
    """Create a librarian directly in DB and log in."""
    return await _staff_token(client, test_session_factory, UserRole.LIBRARIAN, "libpass123")


def auth_header(token: str) -> dict:
    """Return an Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Catalog helpers ────────────────────────────────────────────

@pytest_asyncio.fixture
async def new_item(client: AsyncClient, librarian_user):
    """Factory: create an item through the API and return its JSON."""
    async def _create(title: str = "The Left Hand of Darkness", total_copies: int = 1) -> dict:
        resp = await client.post(
            "/api/v1/items",
            json={"title": title, "total_copies": total_copies},
            headers=auth_header(librarian_user["token"]),
        )
        assert resp.status_code == 201
        return resp.json()
    return _create


@pytest_asyncio.fixture
async def new_borrower(client: AsyncClient, librarian_user):
    """Factory: register a borrower through the API and return its JSON."""
    async def _create(full_name: str = "Test Borrower") -> dict:
        resp = await client.post(
            "/api/v1/borrowers",
            json={
                "email": f"reader-{uuid4().hex[:6]}@test.com",
                "password": BORROWER_PASSWORD,
                "full_name": full_name,
            },
            headers=auth_header(librarian_user["token"]),
        )
        assert resp.status_code == 201
        return resp.json()
    return _create


@pytest.fixture
def staff_headers(librarian_user) -> dict:
    """Authorization header of the librarian, for staff-only reads."""
    return auth_header(librarian_user["token"])
