"""Shared fixtures: a throwaway SQLite database for every test run."""

import os
import tempfile
from pathlib import Path

import pytest_asyncio

# Must be set before backend.config is imported anywhere.
os.environ.setdefault(
    "FLASHDECK_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / 'flashdeck_test.db'}",
)

from backend.database import async_session, engine  # noqa: E402
from backend.models import Base  # noqa: E402


@pytest_asyncio.fixture
async def db_tables():
    """Recreate all tables for a test, then release pooled connections."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_tables):
    async with async_session() as session:
        yield session
