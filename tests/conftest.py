"""Shared fixtures: a per-test SQLite database and an httpx client bound to the app.

DATABASE_URL is pointed at in-memory SQLite before the app is imported so the
module-level engine never needs a PostgreSQL server.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from main import app  # noqa: E402
from site_issues.database.config import Base, get_db  # noqa: E402

API = "/api/v1/issues"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'issues.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_issue(client):
    """Create an issue through the API and return its JSON representation."""

    async def _make_issue(**overrides) -> dict:
        payload = {
            "issueNumber": "A-100",
            "location": "Building 1, floor 2",
            "issueType": "PLUMBING",
        }
        payload.update(overrides)
        resp = await client.post(f"{API}/", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make_issue
