"""
routes.py — Session Store HTTP endpoints.

POST   /api/summaries          — validate, derive, store one capture (201)
GET    /api/summaries          — paginated list, optional sessionType=a,b filter
GET    /api/summaries/latest   — newest N records
GET    /api/summaries/voice    — newest N voice-qualifying records
GET    /api/summaries/{id}     — one record
DELETE /api/summaries/{id}     — delete by id
GET    /api/stats              — dashboard counts (total / per day / voice / per type)
POST   /summarize              — legacy body {content, url} from the first extension build

No authentication in v1. Validation, not-found and store errors are raised as
exceptions and rendered by the handlers in main.py.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from summary_backend.api.summaries.derivation import has_text
from summary_backend.api.summaries.schemas import LegacySummarizeRequest, SummaryCreate
from summary_backend.database import get_db
from summary_backend.errors import SummaryValidationError
from summary_backend.forwarder import forward_summary
from summary_backend.store import (
    commit_summary,
    count_by_day,
    count_by_session_type,
    count_total,
    count_voice,
    create_summary,
    delete_summary,
    get_summary,
    latest_summaries,
    list_summaries,
    parse_session_types,
    total_pages,
    voice_summaries,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Summaries"])
legacy_router = APIRouter(tags=["Legacy"])

# Stored url for legacy /summarize bodies that omit it
LEGACY_UNKNOWN_URL = "unknown"


@router.post("/summaries", status_code=201)
async def create_summary_endpoint(
    body: SummaryCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Store one page summary and/or voice capture.

    Requires url and at least one of summaryText / voiceText (400 otherwise).
    sessionType, summaryLength, voiceLength, pageTitle and tags are derived
    when not supplied. Once committed, the new record is forwarded to
    FORWARD_URL (if configured) after the response is sent.
    """
    record = await create_summary(db, body)
    await commit_summary(db)
    background_tasks.add_task(
        forward_summary, getattr(request.app.state, "http_client", None), record
    )
    return {
        "success": True,
        "message": "Summary saved",
        "id": record.id,
        "sessionType": record.session_type.value,
        "tags": record.tags,
        "timestamp": record.timestamp.isoformat(),
    }


@router.get("/summaries")
async def list_summaries_endpoint(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session_type: Optional[str] = Query(
        default=None,
        alias="sessionType",
        description="Comma-separated filter, e.g. voice_only,dual",
    ),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Newest-first page of records with {page, limit, total, totalPages}."""
    session_types = parse_session_types(session_type)
    records, total = await list_summaries(db, session_types, page, limit)
    return {
        "success": True,
        "data": [r.to_wire() for r in records],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages(total, limit),
        },
    }


@router.get("/summaries/latest")
async def latest_summaries_endpoint(
    limit: int = Query(default=5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> dict:
    records = await latest_summaries(db, limit)
    return {"success": True, "count": len(records), "data": [r.to_wire() for r in records]}


@router.get("/summaries/voice")
async def voice_summaries_endpoint(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Records tagged voice_only/dual or carrying voice text, newest first."""
    records = await voice_summaries(db, limit)
    return {"success": True, "count": len(records), "data": [r.to_wire() for r in records]}


@router.get("/summaries/{summary_id}")
async def get_summary_endpoint(
    summary_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    record = await get_summary(db, summary_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Summary {summary_id} not found")
    return {"success": True, "data": record.to_wire()}


@router.delete("/summaries/{summary_id}")
async def delete_summary_endpoint(
    summary_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    deleted = await delete_summary(db, summary_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Summary {summary_id} not found")
    return {"success": True, "id": summary_id, "message": "Summary deleted"}


@router.get("/stats")
async def stats_endpoint(
    day: Optional[date] = Query(default=None, description="UTC day (YYYY-MM-DD); defaults to today"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Dashboard statistics, read straight from the store (no caching).
    """
    target_day = day or datetime.now(timezone.utc).date()
    return {
        "success": True,
        "total": await count_total(db),
        "day": target_day.isoformat(),
        "dayCount": await count_by_day(db, target_day),
        "voice": await count_voice(db),
        "bySessionType": await count_by_session_type(db),
    }


@legacy_router.post("/summarize")
async def legacy_summarize_endpoint(
    body: LegacySummarizeRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    First-generation extension endpoint: {content, url} → {summary}.
    The summary is stored as a summary_only record and echoed back unchanged.
    Only content is required; a missing url is stored as LEGACY_UNKNOWN_URL.
    """
    if not has_text(body.content):
        raise SummaryValidationError("content", "No summary received")
    url = body.url if has_text(body.url) else LEGACY_UNKNOWN_URL
    record = await create_summary(db, SummaryCreate(url=url, summary_text=body.content))
    await commit_summary(db)
    background_tasks.add_task(
        forward_summary, getattr(request.app.state, "http_client", None), record
    )
    logger.info("Legacy summarize stored id=%s", record.id)
    return {"summary": body.content, "id": record.id}
