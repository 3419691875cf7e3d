"""initial_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-01 12:00:00.000000 UTC

Creates the summaries table: one row per page summary / voice capture.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "summaries",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False, comment="Creation-order surrogate key"),
        sa.Column("id", sa.String(length=36), nullable=False, comment="Public UUID identifier"),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("page_title", sa.Text(), nullable=False),
        sa.Column("summary_text", sa.Text(), nullable=True),
        sa.Column("voice_text", sa.Text(), nullable=True),
        sa.Column("summary_type", sa.String(length=20), nullable=False, comment="brief / detailed / bullets / voice_and_summary"),
        sa.Column("session_type", sa.String(length=12), nullable=False, comment="summary_only / voice_only / dual"),
        sa.Column("summary_length", sa.Integer(), nullable=False),
        sa.Column("voice_length", sa.Integer(), nullable=False),
        sa.Column("session_duration", sa.Integer(), nullable=False, comment="Capture duration in milliseconds"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
    )
    op.create_index(op.f("ix_summaries_id"), "summaries", ["id"], unique=True)
    op.create_index(op.f("ix_summaries_session_type"), "summaries", ["session_type"], unique=False)
    op.create_index(op.f("ix_summaries_timestamp"), "summaries", ["timestamp"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_summaries_timestamp"), table_name="summaries")
    op.drop_index(op.f("ix_summaries_session_type"), table_name="summaries")
    op.drop_index(op.f("ix_summaries_id"), table_name="summaries")
    op.drop_table("summaries")
