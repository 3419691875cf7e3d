"""
models/__init__.py — imports all ORM models so Alembic's env.py
sees them via Base.metadata when generating migrations.
"""
from summary_backend.models.summary import SummaryORM
from summary_backend.models.interaction import InteractionORM

__all__ = ["SummaryORM", "InteractionORM"]
