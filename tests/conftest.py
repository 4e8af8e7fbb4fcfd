"""
Pytest configuration and fixtures.
"""

import os
import tempfile

# Point the app at a throwaway SQLite file before anything imports it.
_DB_DIR = tempfile.mkdtemp(prefix="commission-tests-")
_DB_FILE = os.path.join(_DB_DIR, "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_FILE}"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from commission_tracker.models import Base


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def client():
    """App client on a fresh database file per test."""
    from commission_tracker.main import app

    with TestClient(app) as c:
        yield c

    if os.path.exists(_DB_FILE):
        os.remove(_DB_FILE)


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
