"""
Shared test fixtures for Profile Sections API tests.

Provides database session management, test clients, and profile fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.auth.dependencies import Principal
from app.auth.jwt import create_access_token
from app.config import settings
from app.database import Base, build_engine, get_db
from app.main import app
from app.middleware.rate_limit import reset_limiter
from app.services.invalidation import profile_view_cache

# Import models so they're registered with Base.metadata before table creation
from app.models import Follower, Profile, ProfileSection, ProfileSectionField, Recommendation  # noqa: F401

# Test database URL (SQLite file by default)
TEST_DATABASE_URL = settings.test_database_url

# Create test engine with NullPool to avoid connection issues
test_engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# --- Shared State Reset Fixtures ---


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset rate limiter before each test to ensure test isolation."""
    reset_limiter()
    yield


@pytest.fixture(autouse=True)
def reset_profile_view_cache():
    """Drop cached public profiles between tests."""
    profile_view_cache.clear()
    yield
    profile_view_cache.clear()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create tables before each test function, drop after.
    Provides isolated database state per test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.
    Overrides database dependency with test session.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Authentication Helper Fixtures ---


@pytest.fixture
def auth_headers():
    """Factory fixture for creating bearer token headers."""

    def _auth_headers(principal_id: str | UUID, username: str | None = None) -> dict[str, str]:
        token = create_access_token(str(principal_id), username)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def resolver_for():
    """Factory fixture for principal resolvers handed to the update service."""

    def _resolver_for(principal_id: str | UUID | None):
        async def resolve() -> Principal | None:
            if principal_id is None:
                return None
            return Principal(id=UUID(str(principal_id)))

        return resolve

    return _resolver_for


# --- Profile Fixtures ---


async def _create_profile(
    db_session: AsyncSession,
    username: str,
    email: str,
    profile_sections: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Helper to create a profile row the way signup does."""
    profile = Profile(
        id=uuid4(),
        username=username,
        full_name=username.title(),
        email=email,
        profile_sections=profile_sections or {},
    )
    db_session.add(profile)
    await db_session.commit()

    return {
        "profile_id": str(profile.id),
        "username": profile.username,
        "email": profile.email,
    }


@pytest_asyncio.fixture
async def test_profile(db_session: AsyncSession) -> dict[str, Any]:
    """Create the profile most tests act on as its owner."""
    return await _create_profile(db_session, username="testuser", email="test@example.com")


@pytest_asyncio.fixture
async def second_profile(db_session: AsyncSession) -> dict[str, Any]:
    """Create a second profile for testing ownership/authorization scenarios."""
    return await _create_profile(db_session, username="seconduser", email="second@example.com")


@pytest_asyncio.fixture
async def legacy_profile(db_session: AsyncSession) -> dict[str, Any]:
    """A profile whose section cache predates section rows."""
    return await _create_profile(
        db_session,
        username="legacyuser",
        email="legacy@example.com",
        profile_sections={
            "work": [
                {"position": "Engineer", "company": "Acme", "years": "2019-2022"},
            ],
            "hobbies": {"sport": "climbing", "music": "jazz"},
        },
    )
