"""
database.py — SQLAlchemy 2.0 async engine and session factory.

This module owns ALL database connection infrastructure.
Nothing else in the codebase creates engines or sessions directly
(tests build their own throwaway engine via build_engine()).

Usage in routes (via dependency injection):
    from summary_backend.database import get_db
    async def my_route(db: AsyncSession = Depends(get_db)): ...

Usage in interaction_log.py (log manages its own session scope):
    async with AsyncSessionLocal() as session: ...
"""
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from summary_backend.config import settings


# ---------------------------------------------------------------------------
# Declarative base — ALL ORM models inherit from this
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base.
    All ORM models in summary_backend/models/ inherit from Base.
    Defined here (not in models/) to prevent circular imports in alembic/env.py.
    """
    pass


# ---------------------------------------------------------------------------
# Engine factory — pool settings depend on the driver
# ---------------------------------------------------------------------------
def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # SQLite has no server-side pool; one file, one writer
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,           # Core connection pool size
        "max_overflow": 10,       # Extra connections under peak load
        "pool_pre_ping": True,    # Detect and discard stale connections before each use
    }


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL with driver-appropriate pool options."""
    return create_async_engine(url, echo=echo, **_engine_kwargs(url))


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,   # Keep objects usable after commit without re-querying
    )


# ---------------------------------------------------------------------------
# Application engine + session factory — one per application lifetime
# ---------------------------------------------------------------------------
async_engine = build_engine(settings.database_url, echo=settings.debug)
AsyncSessionLocal = build_session_factory(async_engine)


async def init_models(engine: AsyncEngine = async_engine) -> None:
    """Create all tables from ORM metadata (used when run_migrations is off)."""
    import summary_backend.models  # noqa: F401 — registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# FastAPI dependency — yields session, commits or rolls back
# ---------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an AsyncSession per request.

    Automatically commits on success or rolls back on exception.
    Always closes the session after the request (via async context manager).

    Usage:
        async def route(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
