"""
models/interaction.py — SQLAlchemy ORM model for the chat interaction log.

Table: interaction_log
One row per question/answer exchange, keyed by a caller-chosen session id
(not a summaries.id). The autoincrement id is the insertion order used both
for history replay and for oldest-first truncation.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from summary_backend.database import Base


class InteractionORM(Base):
    __tablename__ = "interaction_log"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Insertion order",
    )
    session_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
        comment="Caller-supplied correlation key",
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
