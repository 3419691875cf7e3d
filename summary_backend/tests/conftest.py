"""
Test configuration for the Page Summary Backend tests.

sys.path is configured so 'from summary_backend...' resolves whether pytest is
run from the repository root or from summary_backend/.

Environment is pinned BEFORE any summary_backend import: the settings singleton
and the module-level engine are built at import time. Every test then gets its
own throwaway SQLite file; the app's get_db dependency and app.state resources
are pointed at it, so no PostgreSQL, network, or Mistral key is needed.
"""
import os
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent.parent   # .../repo/

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ["MISTRAL_API_KEY"] = ""
os.environ["FORWARD_URL"] = ""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """async_sessionmaker bound to a fresh SQLite file with all tables created."""
    from summary_backend.database import build_engine, build_session_factory, init_models

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """One AsyncSession for direct store.py tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async httpx client using ASGI transport — no live server needed.
    ASGITransport does not run the lifespan, so app.state is wired here.
    """
    from summary_backend.api.chat.responder import MistralResponder
    from summary_backend.database import get_db
    from summary_backend.interaction_log import SqlInteractionLog
    from summary_backend.main import app

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.state.interaction_log = SqlInteractionLog(session_factory)
    app.state.responder = MistralResponder(client=None)
    app.state.http_client = None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
