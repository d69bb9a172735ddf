"""Integration-test fixtures (require a migrated PostgreSQL; Redis optional).

Pre-condition: alembic upgrade head

All integration tests share a single event loop so that the module-level
SQLAlchemy async engine pool stays valid across the whole session. When the
database cannot be reached every test here is skipped.
"""

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.pl_common.database import engine
from src.pl_storage.facade import Repository
from src.pl_storage.provider import build_repository, reset_repository


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _require_database() -> AsyncIterator[None]:
    try:
        async with asyncio.timeout(3):
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1 FROM accounts LIMIT 1"))
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"PostgreSQL not available or not migrated: {exc}")
    reset_repository()
    yield
    await engine.dispose()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client, keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def repository() -> Repository:
    return build_repository()
