"""
routes.py — Chat, analysis and interaction-history HTTP endpoints.

POST   /api/chat                         — resolve a question, log the exchange, reply
GET    /api/analyse/latest               — analysis of the newest stored capture
GET    /api/chat/history/{session_id}    — logged exchanges for a session id
DELETE /api/chat/history/{session_id}    — erase a session id's exchanges

app.state resources (interaction_log, responder) are set in main.py lifespan.
The chat endpoint never answers with an empty reply: a blank question gets
guidance (success=false, nothing logged) and an unexpected failure gets a
500 envelope that still carries a local-classifier reply.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from summary_backend.api.chat.classifier import local_reply
from summary_backend.api.chat.resolver import analyse_latest, build_compound_question, resolve
from summary_backend.api.chat.schemas import ChatRequest
from summary_backend.database import get_db
from summary_backend.errors import error_body
from summary_backend.interaction_log import InteractionLog

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Chat"])

EMPTY_QUESTION_REPLY = (
    "Please type a question first — for example, ask me what your latest "
    "summary is about."
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/chat")
async def chat_endpoint(
    body: ChatRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Answer a chat question and append the exchange to the interaction log.

    Flow:
      1. Blank question → guidance reply, success=false, nothing logged
      2. analyse=true → attach the newest capture's text (≤500 chars) to the remote prompt
      3. resolve(): local classifier → Mistral (8–15s timeout) → canned/rephrase fallback
      4. Append {sessionId, question, answer} to the interaction log (cap 1000 → 500)
    """
    question = (body.question or "").strip()
    if not question:
        return {
            "success": False,
            "reply": EMPTY_QUESTION_REPLY,
            "sessionId": body.session_id,
            "timestamp": _now_iso(),
        }

    interaction_log: InteractionLog = request.app.state.interaction_log
    responder = getattr(request.app.state, "responder", None)

    try:
        remote_prompt = await build_compound_question(db, question) if body.analyse else None
        reply = await resolve(question, responder, remote_prompt=remote_prompt)
        entry = await interaction_log.append(body.session_id, question, reply)
    except Exception:
        logger.error("Chat request failed session_id=%s", body.session_id, exc_info=True)
        content = error_body("INTERNAL_ERROR", "Chat request failed")
        content.update(
            reply=local_reply(question),
            sessionId=body.session_id,
            timestamp=_now_iso(),
        )
        return JSONResponse(status_code=500, content=content)

    logger.info("Chat answered session_id=%s analyse=%s", body.session_id, body.analyse)
    return {
        "success": True,
        "reply": reply,
        "sessionId": body.session_id,
        "timestamp": entry.time.isoformat(),
    }


@router.get("/analyse/latest")
async def analyse_latest_endpoint(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Analyse the newest capture (summary + voice text).
    404 when nothing is stored, 400 when the newest record has no text.
    """
    responder = getattr(request.app.state, "responder", None)
    try:
        record, analysis = await analyse_latest(db, responder)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "success": True,
        "analysis": analysis,
        "summaryId": record.id,
        "pageTitle": record.page_title,
        "sessionType": record.session_type.value,
        "timestamp": _now_iso(),
    }


@router.get("/chat/history/{session_id}")
async def chat_history_endpoint(session_id: str, request: Request) -> dict:
    """All logged exchanges for session_id, oldest first."""
    interaction_log: InteractionLog = request.app.state.interaction_log
    entries = await interaction_log.history(session_id)
    logger.info("Chat history request session_id=%s messages=%d", session_id, len(entries))
    return {
        "success": True,
        "sessionId": session_id,
        "count": len(entries),
        "history": [e.to_wire() for e in entries],
    }


@router.delete("/chat/history/{session_id}")
async def clear_chat_history_endpoint(session_id: str, request: Request) -> dict:
    interaction_log: InteractionLog = request.app.state.interaction_log
    removed = await interaction_log.clear(session_id)
    return {"success": True, "sessionId": session_id, "removed": removed}
