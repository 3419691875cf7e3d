"""add_interaction_log

Revision ID: 002_add_interaction_log
Revises: 001_initial_schema
Create Date: 2026-10-03 00:00:00.000000 UTC

Adds the interaction_log table for chat question/answer history.
Capped by the application at 1000 rows (truncated to the newest 500).
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_add_interaction_log"
down_revision: Union[str, None] = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "interaction_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Insertion order"),
        sa.Column(
            "session_id", sa.String(128), nullable=False,
            comment="Caller-supplied correlation key",
        ),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("answer", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_interaction_log_session_id",
        "interaction_log",
        ["session_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_interaction_log_session_id", table_name="interaction_log")
    op.drop_table("interaction_log")
