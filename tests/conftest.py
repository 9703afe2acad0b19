"""
Pytest configuration and fixtures for async database testing.

Tests run against an in-memory SQLite database (aiosqlite). Every test gets
a fresh engine and schema, so there is nothing to roll back between tests.
"""
import os

# Must be set before shopfront is imported: settings are cached and the
# module-level engine is built from DATABASE_URL at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DISABLE_AUTH_CHECKS"] = "true"
os.environ["JWT_SECRET"] = "shopfront-test-secret-0123456789abcdef"
os.environ["SEED_DEMO_DATA"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shopfront.core.db import Base, get_session


TEST_DATABASE_URL = os.environ["DATABASE_URL"]


@pytest.fixture(scope="function")
async def async_engine():
    """
    Create a per-test engine.

    StaticPool keeps a single connection so the in-memory database survives
    across sessions.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_session(session_maker):
    """Session for arranging data and asserting on database state."""
    async with session_maker() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_maker):
    """
    Create FastAPI AsyncClient with database session override.

    Each request gets its own session, like in production.
    """
    # Import here so the environment above is applied first
    from shopfront.main import app

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def owner_headers(user_id: str) -> dict:
    """Development identity header for an owner route."""
    return {"X-User-Id": user_id}


@pytest.fixture
def register_store(client):
    """Register a store through the API and return the response body."""

    async def _register(user_id: str, name: str, **extra) -> dict:
        response = await client.post(
            "/stores",
            json={"name": name, **extra},
            headers=owner_headers(user_id),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def add_product(client):
    """Create a product in the caller's store and return the response body."""

    async def _add(user_id: str, name: str, price_cents: int, inventory: int = 10, status: str = "active") -> dict:
        response = await client.post(
            "/products",
            json={
                "name": name,
                "price_cents": price_cents,
                "inventory": inventory,
                "status": status,
            },
            headers=owner_headers(user_id),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add
