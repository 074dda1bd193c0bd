"""
Test fixtures - throwaway SQLite database per test + authenticated HTTP client
"""
import os

os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("JWT_ACCESS_SECRET_KEY", "test-secret-key")

from datetime import timedelta

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.db import Base, get_db
from app.core.scheduler import EscalationScheduler
from app.core.security import create_access_token
from app.models.enums.complaint_status import ComplaintStatus, ComplaintPriority
from app.models.enums.user_role import UserRole
from app.models.support.category_models import Category
from app.models.support.complaint_models import Complaint
from app.models.users.user_models import User
from app.utils.datetime_utils import utc_now
from main import app


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """File-backed so the scheduler's own sessions see the same data"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """
    Baseline rows. Returned as plain ids: a rollback inside a service
    expires every ORM object in the shared session.
    """
    admin = User(username="admin@example.com", full_name="Ada Admin", role=UserRole.ADMIN, department="Management")
    it_staff = User(username="ivan@example.com", full_name="Ivan IT", role=UserRole.STAFF, department="IT")
    it_staff_2 = User(username="irene@example.com", full_name="Irene IT", role=UserRole.STAFF, department="IT")
    general = User(username="gina@example.com", full_name="Gina General", role=UserRole.STAFF, department="General")
    hr_staff = User(username="hank@example.com", full_name="Hank HR", role=UserRole.STAFF, department="HR")
    customer = User(username="carl@example.com", full_name="Carl Customer", role=UserRole.USER)
    other_customer = User(username="olga@example.com", full_name="Olga Other", role=UserRole.USER)

    network = Category(name="Network", department="IT", resolution_time_hours=24)
    billing = Category(name="Billing", department="Finance", resolution_time_hours=48)
    facilities = Category(name="Facilities", department="Maintenance", resolution_time_hours=None)

    rows = {
        "admin": admin,
        "it_staff": it_staff,
        "it_staff_2": it_staff_2,
        "general": general,
        "hr_staff": hr_staff,
        "customer": customer,
        "other_customer": other_customer,
        "network": network,
        "billing": billing,
        "facilities": facilities,
    }
    db_session.add_all(rows.values())
    await db_session.commit()

    return {name: row.id for name, row in rows.items()}


@pytest_asyncio.fixture()
async def make_complaint(db_session, seed_data):
    """Insert a complaint row directly, bypassing the lifecycle rules"""
    counter = {"n": 0}

    async def _make(
        *,
        category_id=None,
        submitted_by_id=None,
        priority=ComplaintPriority.MEDIUM,
        status=ComplaintStatus.SUBMITTED,
        assigned_to_id=None,
        created_at=None,
        deadline=None,
        resolved_at=None,
        is_escalated=False,
        escalated_at=None,
        escalated_by_id=None,
    ) -> int:
        counter["n"] += 1
        now = utc_now()
        created_at = created_at or now - timedelta(hours=1)
        complaint = Complaint(
            ticket_number=f"CMP-TEST-{counter['n']:06d}",
            title=f"Test complaint {counter['n']}",
            description="Something is not working as expected",
            category_id=category_id or seed_data["network"],
            submitted_by_id=submitted_by_id or seed_data["customer"],
            priority=priority,
            status=status,
            assigned_to_id=assigned_to_id,
            created_at=created_at,
            deadline=deadline or created_at + timedelta(hours=24),
            resolved_at=resolved_at,
            is_escalated=is_escalated,
            escalated_at=escalated_at,
            escalated_by_id=escalated_by_id,
        )
        db_session.add(complaint)
        await db_session.commit()
        return complaint.id

    return _make


@pytest_asyncio.fixture()
async def scheduler(session_factory):
    sched = EscalationScheduler(session_factory, restart_delay_seconds=0)
    yield sched
    sched.shutdown()


def auth_headers(username: str, token_version: int = 0) -> dict:
    token = create_access_token(subject=username, token_version=token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def client(db_session, seed_data, scheduler):
    """Admin-authenticated httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # ASGITransport does not run the lifespan
    app.state.escalation_scheduler = scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers.update(auth_headers("admin@example.com"))
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session, scheduler):
    """Unauthenticated httpx AsyncClient"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.escalation_scheduler = scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def headers_for(seed_data):
    """Bearer headers for any seeded user: headers_for("customer")"""
    usernames = {
        "admin": "admin@example.com",
        "it_staff": "ivan@example.com",
        "customer": "carl@example.com",
        "other_customer": "olga@example.com",
    }

    def _headers(name: str) -> dict:
        return auth_headers(usernames[name])

    return _headers
