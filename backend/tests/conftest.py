"""
Test configuration and fixtures
"""
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PHOTO_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="requestdesk-photos-"))
os.environ.pop("SENDGRID_API_KEY", None)

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from requestdesk.core.database import Base, build_engine, get_db  # noqa: E402
from requestdesk.core.security import create_access_token, get_password_hash  # noqa: E402
from requestdesk.main import app  # noqa: E402
from requestdesk.models import (  # noqa: E402
    Organization,
    User,
    UserRole,
    Building,
    Facility,
)
from requestdesk.services.photo_storage import LocalPhotoStorage  # noqa: E402
from requestdesk.services.request_service import RequestService  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "password123"


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = build_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_session_maker(test_engine):
    """Create test session maker."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(test_session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the test database."""

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def photo_storage(tmp_path):
    """Photo storage rooted in a per-test directory."""
    return LocalPhotoStorage(root=str(tmp_path / "photos"))


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict:
        token = create_access_token(user.id, additional_claims={"org_id": user.organization_id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ----------------------------------------------------------------------
# Tenants and users
# ----------------------------------------------------------------------


async def _add_user(db, email, role, organization=None, **kwargs) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        first_name=kwargs.pop("first_name", email.split("@")[0].title()),
        last_name=kwargs.pop("last_name", "Tester"),
        role=role,
        organization_id=organization.id if organization else None,
        **kwargs,
    )
    db.add(user)
    await db.flush()
    return user


@pytest.fixture
async def org(db_session) -> Organization:
    organization = Organization(name="Lincoln High School", slug="lincoln", domain="lincoln.edu")
    db_session.add(organization)
    await db_session.commit()
    return organization


@pytest.fixture
async def other_org(db_session) -> Organization:
    organization = Organization(name="Roosevelt Academy", slug="roosevelt", domain="roosevelt.edu")
    db_session.add(organization)
    await db_session.commit()
    return organization


@pytest.fixture
async def requester(db_session, org) -> User:
    user = await _add_user(db_session, "riley@lincoln.edu", UserRole.REQUESTER, org)
    await db_session.commit()
    return user


@pytest.fixture
async def other_requester(db_session, org) -> User:
    user = await _add_user(db_session, "sam@lincoln.edu", UserRole.REQUESTER, org)
    await db_session.commit()
    return user


@pytest.fixture
async def maintenance(db_session, org) -> User:
    user = await _add_user(db_session, "morgan@lincoln.edu", UserRole.MAINTENANCE, org)
    await db_session.commit()
    return user


@pytest.fixture
async def second_maintenance(db_session, org) -> User:
    user = await _add_user(db_session, "jordan@lincoln.edu", UserRole.MAINTENANCE, org)
    await db_session.commit()
    return user


@pytest.fixture
async def admin(db_session, org) -> User:
    user = await _add_user(db_session, "avery@lincoln.edu", UserRole.ADMIN, org)
    await db_session.commit()
    return user


@pytest.fixture
async def super_admin(db_session) -> User:
    user = await _add_user(db_session, "root@requestdesk.io", UserRole.SUPER_ADMIN)
    await db_session.commit()
    return user


@pytest.fixture
async def outside_staff(db_session, other_org) -> User:
    user = await _add_user(db_session, "casey@roosevelt.edu", UserRole.ADMIN, other_org)
    await db_session.commit()
    return user


# ----------------------------------------------------------------------
# Directory and requests
# ----------------------------------------------------------------------


@pytest.fixture
async def directory(db_session, org):
    """A building with rooms and a facility in the main organization."""
    building = Building(organization_id=org.id, name="Main Hall", room_numbers=["101", "102", "201"])
    facility = Facility(organization_id=org.id, name="Auditorium", available_items=["chairs", "podium"])
    db_session.add_all([building, facility])
    await db_session.commit()
    return building, facility


@pytest.fixture
def facilities_payload():
    return {
        "event": "Spring Concert",
        "event_date": "2026-04-18",
        "facility": "Auditorium",
        "start_time": "18:00",
        "end_time": "20:30",
        "items": {"chairs_audience": True, "chairs_audience_qty": 120, "podium": True},
    }


@pytest.fixture
def building_payload():
    return {
        "event": "Leaking radiator",
        "building": "Main Hall",
        "room_number": "101",
        "description": "Water pooling under the radiator by the window.",
        "priority": "high",
    }


@pytest.fixture
async def building_request(db_session, directory, requester, building_payload, photo_storage):
    """A committed, pending building request submitted by ``requester``."""
    service = RequestService(db_session, photo_storage)
    result = await service.create_building_request(requester, building_payload)
    await db_session.commit()
    return result.request
