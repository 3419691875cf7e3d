"""
store.py — Session Store: data access facade for captured page sessions.

Provides a consistent, high-level API for persisting and querying summaries.
Routes use these functions — no route touches SQLAlchemy directly.

Design principles:
  - All functions are async and accept an AsyncSession parameter
  - No raw SQL: ORM-only queries
  - Logs only summary ids and counts — never page text or voice transcripts
  - Returns SummaryRecord Pydantic objects (not ORM instances) so callers are persistence-agnostic
  - SQLAlchemy failures surface as StoreUnavailableError with a generic message
  - No caching: every count/list reads the table as it is right now
"""
import logging
import math
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from summary_backend.api.summaries.derivation import (
    derive_session_type,
    derive_tags,
    has_text,
    text_length,
)
from summary_backend.api.summaries.schemas import (
    VOICE_SESSION_TYPES,
    SessionType,
    SummaryCreate,
    SummaryRecord,
)
from summary_backend.errors import SummaryValidationError, translate_store_errors
from summary_backend.models.summary import SummaryORM

logger = logging.getLogger(__name__)


def _newest_first(stmt):
    # timestamp collisions are possible at sub-ms precision; seq keeps creation order
    return stmt.order_by(SummaryORM.timestamp.desc(), SummaryORM.seq.desc())


def _voice_predicate():
    """
    Voice sessions: tagged voice_only/dual OR carrying non-empty voice text.
    Deliberately a union — a summary_only row with voice text still qualifies.
    """
    return or_(
        SummaryORM.session_type.in_([t.value for t in VOICE_SESSION_TYPES]),
        and_(SummaryORM.voice_text.is_not(None), SummaryORM.voice_text != ""),
    )


# ---------------------------------------------------------------------------
# Validation + filter parsing
# ---------------------------------------------------------------------------

def validate_summary_input(data: SummaryCreate) -> None:
    """
    Enforce the write invariant: url present, plus at least one of summaryText / voiceText.

    Raises:
        SummaryValidationError naming the first missing field.
    """
    if not has_text(data.url):
        raise SummaryValidationError("url", "Missing required field: url")
    if not has_text(data.summary_text) and not has_text(data.voice_text):
        raise SummaryValidationError(
            "summaryText",
            "Missing required field: summaryText (or voiceText)",
        )


def parse_session_types(raw: Optional[str]) -> Optional[list[SessionType]]:
    """
    Parse a comma-separated sessionType filter ("voice_only,dual").
    Returns None when no filter was requested. Unknown values raise a 400.
    """
    if raw is None or not raw.strip():
        return None
    parsed: list[SessionType] = []
    for part in raw.split(","):
        value = part.strip()
        if not value:
            continue
        try:
            session_type = SessionType(value)
        except ValueError:
            allowed = ", ".join(t.value for t in SessionType)
            raise SummaryValidationError(
                "sessionType",
                f"Unknown sessionType '{value}'. Allowed: {allowed}",
            ) from None
        if session_type not in parsed:
            parsed.append(session_type)
    return parsed or None


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


# ---------------------------------------------------------------------------
# Write operations
# ---------------------------------------------------------------------------

async def create_summary(db: AsyncSession, data: SummaryCreate) -> SummaryRecord:
    """
    Validate, derive defaults, and persist one capture session.

    Explicit values win when present and non-empty; everything else is derived:
      pageTitle ← url, sessionType ← text presence, lengths ← len(text), tags ← vocabulary.
    Uses flush() (not commit()) — the get_db() dependency commits at request end.
    """
    validate_summary_input(data)

    url = data.url.strip()
    orm = SummaryORM(
        id=str(uuid.uuid4()),
        url=url,
        page_title=data.page_title if has_text(data.page_title) else url,
        summary_text=data.summary_text,
        voice_text=data.voice_text,
        summary_type=data.summary_type.value,
        session_type=(
            data.session_type or derive_session_type(data.summary_text, data.voice_text)
        ).value,
        summary_length=(
            data.summary_length if data.summary_length is not None
            else text_length(data.summary_text)
        ),
        voice_length=(
            data.voice_length if data.voice_length is not None
            else text_length(data.voice_text)
        ),
        session_duration=data.session_duration,
        tags=derive_tags(data.summary_text, data.voice_text),
        user_agent=data.user_agent,
        is_archived=False,
        timestamp=datetime.now(timezone.utc),
    )
    with translate_store_errors("Failed to save summary", logger):
        db.add(orm)
        await db.flush()
    logger.info(
        "Saved summary id=%s session_type=%s summary_len=%d voice_len=%d tags=%s",
        orm.id, orm.session_type, orm.summary_length, orm.voice_length, orm.tags,
    )
    return SummaryRecord.model_validate(orm)


async def commit_summary(db: AsyncSession) -> None:
    """
    Commit the pending write now instead of at request end.
    Used before anything leaves the process (forwarding) so a failed commit
    is never announced.
    """
    with translate_store_errors("Failed to save summary", logger):
        await db.commit()


async def delete_summary(db: AsyncSession, summary_id: str) -> bool:
    """Delete by public id. Returns False if no such record (caller raises 404)."""
    with translate_store_errors("Failed to delete summary", logger):
        result = await db.execute(delete(SummaryORM).where(SummaryORM.id == summary_id))
        await db.flush()
    deleted = (result.rowcount or 0) > 0
    logger.info("Delete summary id=%s deleted=%s", summary_id, deleted)
    return deleted


# ---------------------------------------------------------------------------
# Read operations
# ---------------------------------------------------------------------------

async def get_summary(db: AsyncSession, summary_id: str) -> Optional[SummaryRecord]:
    """Retrieve one record by id. Returns None if not found."""
    with translate_store_errors("Failed to fetch summary", logger):
        result = await db.execute(select(SummaryORM).where(SummaryORM.id == summary_id))
        orm = result.scalar_one_or_none()
    if orm is None:
        return None
    return SummaryRecord.model_validate(orm)


async def list_summaries(
    db: AsyncSession,
    session_types: Optional[Sequence[SessionType]] = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[SummaryRecord], int]:
    """
    Paginated, newest-first listing with an optional sessionType set filter (OR).

    Returns (records on this page, total matching before pagination).
    A page past the end yields an empty list with the same total.
    """
    if page < 1 or page_size < 1:
        raise SummaryValidationError("page", "page and limit must both be >= 1")

    conditions = []
    if session_types:
        conditions.append(SummaryORM.session_type.in_([t.value for t in session_types]))

    count_stmt = select(func.count()).select_from(SummaryORM).where(*conditions)
    rows_stmt = (
        _newest_first(select(SummaryORM).where(*conditions))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    with translate_store_errors("Failed to fetch summaries", logger):
        total = (await db.execute(count_stmt)).scalar_one()
        rows = (await db.execute(rows_stmt)).scalars().all()

    logger.info(
        "List summaries page=%d limit=%d filter=%s total=%d returned=%d",
        page, page_size, [t.value for t in session_types or []], total, len(rows),
    )
    return [SummaryRecord.model_validate(r) for r in rows], total


async def latest_summaries(db: AsyncSession, limit: int = 5) -> list[SummaryRecord]:
    """Most recent `limit` records, newest first."""
    with translate_store_errors("Failed to fetch summaries", logger):
        result = await db.execute(_newest_first(select(SummaryORM)).limit(limit))
        rows = result.scalars().all()
    return [SummaryRecord.model_validate(r) for r in rows]


async def voice_summaries(db: AsyncSession, limit: int = 10) -> list[SummaryRecord]:
    """Most recent `limit` voice-qualifying records (see _voice_predicate), newest first."""
    with translate_store_errors("Failed to fetch voice summaries", logger):
        result = await db.execute(
            _newest_first(select(SummaryORM).where(_voice_predicate())).limit(limit)
        )
        rows = result.scalars().all()
    return [SummaryRecord.model_validate(r) for r in rows]


# ---------------------------------------------------------------------------
# Aggregate counts — dashboard statistics
# ---------------------------------------------------------------------------

async def count_total(db: AsyncSession) -> int:
    with translate_store_errors("Failed to fetch statistics", logger):
        result = await db.execute(select(func.count()).select_from(SummaryORM))
    return result.scalar_one()


async def count_voice(db: AsyncSession) -> int:
    with translate_store_errors("Failed to fetch statistics", logger):
        result = await db.execute(
            select(func.count()).select_from(SummaryORM).where(_voice_predicate())
        )
    return result.scalar_one()


async def count_by_day(db: AsyncSession, day: date) -> int:
    """Records whose timestamp falls on the given UTC calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    with translate_store_errors("Failed to fetch statistics", logger):
        result = await db.execute(
            select(func.count())
            .select_from(SummaryORM)
            .where(SummaryORM.timestamp >= start, SummaryORM.timestamp < end)
        )
    return result.scalar_one()


async def count_by_session_type(db: AsyncSession) -> dict[str, int]:
    """Per-sessionType counts; every type is present, zero when absent."""
    with translate_store_errors("Failed to fetch statistics", logger):
        result = await db.execute(
            select(SummaryORM.session_type, func.count()).group_by(SummaryORM.session_type)
        )
        rows = result.all()
    counts = {t.value: 0 for t in SessionType}
    for session_type, count in rows:
        counts[session_type] = count
    return counts
