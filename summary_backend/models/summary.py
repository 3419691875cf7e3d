"""
models/summary.py — SQLAlchemy ORM model for captured page sessions.

Table: summaries
One row per capture event from the browser extension (page summary and/or
voice transcript). Rows are written once and never updated in place;
they leave the table only through an explicit delete by id.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from summary_backend.database import Base


class SummaryORM(Base):
    """
    ORM model for a single capture session.

    seq:          autoincrement surrogate key — creation order, used as the
                  tie-break when two rows share a timestamp.
    id:           public UUID handed to clients.
    session_type: summary_only / voice_only / dual — derived on write unless
                  the client supplied one.
    tags:         JSON list of at most 3 keyword-vocabulary tags.
    is_archived:  kept for wire compatibility; nothing writes it after create.
    """
    __tablename__ = "summaries"

    seq: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Creation-order surrogate key",
    )
    id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        index=True,
        nullable=False,
        default=lambda: str(uuid.uuid4()),
        comment="Public UUID identifier",
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    page_title: Mapped[str] = mapped_column(Text, nullable=False)
    summary_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    voice_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="brief",
        comment="brief / detailed / bullets / voice_and_summary",
    )
    session_type: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        index=True,
        comment="summary_only / voice_only / dual",
    )
    summary_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    voice_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    session_duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Capture duration in milliseconds",
    )
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
