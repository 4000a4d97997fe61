"""
Shared pytest fixtures for the rotation engine tests.

Uses SQLite in-memory with StaticPool so all sessions share one connection,
meaning data written in one session is visible to others (important for HTTP client tests).
"""
import uuid
from datetime import date, datetime, time, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

import shiftrota.models  # noqa: F401
from shiftrota.core.database import Database
from shiftrota.core.security import create_access_token
from shiftrota.main import create_app
from shiftrota.models.shift import Shift
from shiftrota.models.team import Team, TeamMember
from shiftrota.models.tenant import Tenant
from shiftrota.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ── Database registry (function-scoped: fresh DB per test) ───────────────────

@pytest_asyncio.fixture
async def database():
    """Fresh in-memory SQLite database per test with a shared connection pool."""
    database = Database(TEST_DATABASE_URL, poolclass=StaticPool)
    await database.create_tables()

    yield database

    await database.drop_tables()
    await database.dispose()


@pytest_asyncio.fixture
async def db(database) -> AsyncSession:
    """Async DB session for direct data inspection inside tests."""
    async with database.session_factory() as session:
        yield session


# ── HTTP client fixture ───────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(database) -> AsyncClient:
    """
    FastAPI test client bound to the per-test database registry.
    Each request gets its own session but shares the same underlying
    connection via StaticPool.
    """
    app = create_app(database)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


# ── Tenant + User fixtures ────────────────────────────────────────────────────

async def make_tenant(db, name: str = "Test GmbH") -> Tenant:
    t = Tenant(
        id=uuid.uuid4(),
        name=name,
        slug=f"test-{uuid.uuid4().hex[:8]}",
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(t)
    await db.commit()
    await db.refresh(t)
    return t


async def make_user(db, tenant, role: str = "employee", email: str | None = None) -> User:
    u = User(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        email=email or f"{role}-{uuid.uuid4().hex[:8]}@test.de",
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(u)
    await db.commit()
    await db.refresh(u)
    return u


async def make_team(db, tenant, members=()) -> Team:
    team = Team(id=uuid.uuid4(), tenant_id=tenant.id, name="Frühteam")
    db.add(team)
    await db.flush()
    for user in members:
        db.add(TeamMember(tenant_id=tenant.id, team_id=team.id, user_id=user.id))
    await db.commit()
    await db.refresh(team)
    return team


async def make_manual_shift(db, user, day: date, status: str = "planned") -> Shift:
    shift = Shift(
        tenant_id=user.tenant_id,
        user_id=user.id,
        date=day,
        start_time=time(6, 0),
        end_time=time(14, 0),
        status=status,
    )
    db.add(shift)
    await db.commit()
    await db.refresh(shift)
    return shift


@pytest_asyncio.fixture
async def tenant(db) -> Tenant:
    return await make_tenant(db)


@pytest_asyncio.fixture
async def admin_user(db, tenant) -> User:
    return await make_user(db, tenant, "admin", "admin@test.de")


@pytest_asyncio.fixture
async def manager_user(db, tenant) -> User:
    return await make_user(db, tenant, "manager", "manager@test.de")


@pytest_asyncio.fixture
async def employee_user(db, tenant) -> User:
    return await make_user(db, tenant, "employee", "employee@test.de")


@pytest_asyncio.fixture
async def second_employee(db, tenant) -> User:
    return await make_user(db, tenant, "employee", "employee2@test.de")


@pytest.fixture
def admin_token(admin_user) -> str:
    return create_access_token(admin_user.id, admin_user.tenant_id, "admin")


@pytest.fixture
def manager_token(manager_user) -> str:
    return create_access_token(manager_user.id, manager_user.tenant_id, "manager")


@pytest.fixture
def employee_token(employee_user) -> str:
    return create_access_token(employee_user.id, employee_user.tenant_id, "employee")


# ── Helper ────────────────────────────────────────────────────────────────────

def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
