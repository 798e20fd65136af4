"""Shared fixtures: one event loop, a throwaway database and clean recorders."""

import asyncio
import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# main.py refuses to start without trusted origins
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("DISABLE_RATE_LIMITS", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from volleyscout import db, models  # noqa: F401,E402
from volleyscout.cache import live_recorders  # noqa: E402


def _sqlite_file(url: str):
    if url.startswith("sqlite") and ":memory:" not in url:
        return url.split("///", 1)[-1]
    return None


async def _recreate_tables() -> None:
    engine = db.engine or db.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


async def _dispose_engine() -> None:
    if db.engine is not None:
        await db.engine.dispose()
    db.engine = None
    db.AsyncSessionLocal = None


@pytest.fixture(scope="session")
def session_loop():
    """Event loop shared by every sync test that drives async code."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    path = _sqlite_file(os.environ["DATABASE_URL"])
    if path and os.path.exists(path):
        os.remove(path)
    # build the engine lazily against the test URL
    db.engine = None
    db.AsyncSessionLocal = None
    yield
    session_loop.run_until_complete(_dispose_engine())


@pytest.fixture(autouse=True)
def reset_schema(request, session_loop):
    """Start each test with empty tables unless marked ``preserve_schema``."""

    if not request.node.get_closest_marker("preserve_schema"):
        session_loop.run_until_complete(_recreate_tables())
    yield


@pytest.fixture(autouse=True)
def reset_live_recorders(session_loop):
    session_loop.run_until_complete(live_recorders.clear())
    yield
    session_loop.run_until_complete(live_recorders.clear())
