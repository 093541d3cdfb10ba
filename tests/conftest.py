import pytest_asyncio

from gastrocore.core.db import init_db, close_db


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await init_db(db_url="sqlite://:memory:")
    yield
    await close_db()
