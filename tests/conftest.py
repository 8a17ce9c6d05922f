"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
``FOR UPDATE`` is a no-op on SQLite; savepoints are real.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrdesk.common.constants import EmployeeStatus, UserRole
from hrdesk.config import settings
from hrdesk.database import Base, get_db
from hrdesk.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import hrdesk.auth.models  # noqa: F401
import hrdesk.automation.models  # noqa: F401
import hrdesk.common.audit  # noqa: F401
import hrdesk.core_hr.models  # noqa: F401
import hrdesk.crm.models  # noqa: F401
import hrdesk.leave.models  # noqa: F401
import hrdesk.notifications.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _sqlite_connect(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4(); hand BEGIN control to SQLAlchemy."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT
    dbapi_conn.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrdesk.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    hire_date: date = date(2024, 1, 15),
    leave_credits: Decimal = Decimal("10"),
    status: EmployeeStatus = EmployeeStatus.active,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"HD-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@hrdesk.test",
        hire_date=hire_date,
        leave_credits=leave_credits,
        status=status,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_user(
    *,
    role: UserRole = UserRole.employee,
    employee_id: uuid.UUID | None = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        email=f"{role.value}.{uuid.uuid4().hex[:8]}@hrdesk.test",
        full_name=f"Test {role.value.title()}",
        role=role,
        employee_id=employee_id,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )


def _make_client(*, name: str = "Acme Corp") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs):
    from hrdesk.core_hr.models import Employee

    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def seed_user(db: AsyncSession, **kwargs):
    from hrdesk.auth.models import User

    user = User(**_make_user(**kwargs))
    db.add(user)
    await db.flush()
    return user


async def seed_client(db: AsyncSession, **kwargs):
    from hrdesk.crm.models import Client

    client = Client(**_make_client(**kwargs))
    db.add(client)
    await db.flush()
    return client


@pytest.fixture
async def test_employee(db):
    """An active employee hired 2024-01-15 with 10 credits."""
    return await seed_employee(db)


@pytest.fixture
async def employee_user(db, test_employee):
    """Employee-role login linked to ``test_employee``."""
    return await seed_user(db, role=UserRole.employee, employee_id=test_employee.id)


@pytest.fixture
async def hr_user(db):
    return await seed_user(db, role=UserRole.hr)


@pytest.fixture
async def admin_user(db):
    return await seed_user(db, role=UserRole.admin)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing (``sub`` = user id)."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {"sub": str(user_id), "exp": exp}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
