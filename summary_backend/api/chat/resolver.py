"""
resolver.py — Response resolution: classify → try remote → fall back.

resolve() owns no state and never raises: whatever the remote responder does,
the caller gets non-empty text. analyse_latest() and build_compound_question()
read the newest Session Store record and delegate to resolve(). Analysis
never classifies the captured text: it always asks the remote responder and
falls back to ANALYSIS_FALLBACK_REPLY.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from summary_backend.api.chat.classifier import FALLBACK_REPLY, Classification, classify
from summary_backend.api.chat.responder import TextResponder
from summary_backend.api.summaries.schemas import SummaryRecord
from summary_backend.errors import NothingToAnalyseError, RemoteResponderError
from summary_backend.store import latest_summaries

logger = logging.getLogger(__name__)

# Chat questions with analyse=true carry at most this much captured text
CHAT_CONTEXT_MAX_CHARS = 500
# /api/analyse/latest sends a longer excerpt
ANALYSIS_MAX_CHARS = 2000

ANALYSIS_INSTRUCTION = (
    "Review the following text captured from a web page and/or a voice note. "
    "Give a short analysis: the main points, anything that looks important or "
    "actionable, and one follow-up question worth exploring.\n\nCaptured text:\n"
)

ANALYSIS_FALLBACK_REPLY = (
    "I couldn't analyse your latest capture right now. Please try again in a "
    "moment, or ask me a question about it in the chat."
)


def _analysis_request(_: str) -> Classification:
    # Captured text is never classified as a chat intent: always try the
    # remote responder, fall back to the fixed analysis reply
    return Classification(category="analysis", answer=ANALYSIS_FALLBACK_REPLY, allow_remote=True)


async def resolve(
    question: str,
    responder: Optional[TextResponder] = None,
    classifier: Callable[[str], Classification] = classify,
    remote_prompt: Optional[str] = None,
) -> str:
    """
    Answer a question without ever propagating a remote failure.

    1. Blank question → generic rephrase prompt (no remote call).
    2. Classify locally. No match, or a match that allows remote → ask the responder.
    3. Remote success → its text verbatim. Remote failure → canned answer or rephrase prompt.

    remote_prompt, when given, is what the responder sees (e.g. question + captured
    context); classification always runs on the plain question.
    """
    if not question or not question.strip():
        return FALLBACK_REPLY

    local = classifier(question)
    if local.matched:
        logger.info("Local classifier matched category=%s allow_remote=%s", local.category, local.allow_remote)

    if responder is not None and (not local.matched or local.allow_remote):
        try:
            return await responder.respond(remote_prompt or question)
        except RemoteResponderError as exc:
            logger.warning("Remote responder unavailable, using local answer: %s", exc)

    return local.answer or FALLBACK_REPLY


def capture_text(record: SummaryRecord) -> str:
    """Summary and voice text joined by a space, trimmed."""
    parts = [record.summary_text or "", record.voice_text or ""]
    return " ".join(p.strip() for p in parts if p and p.strip()).strip()


async def build_compound_question(db: AsyncSession, question: str) -> Optional[str]:
    """
    Prompt for chat with analyse=true: the question plus the newest capture
    (truncated to CHAT_CONTEXT_MAX_CHARS). None when there is nothing to attach.
    """
    latest = await latest_summaries(db, limit=1)
    if not latest:
        return None
    text = capture_text(latest[0])
    if not text:
        return None
    return (
        f"{question}\n\n"
        f"Context from my latest captured page ({latest[0].page_title}):\n"
        f"{text[:CHAT_CONTEXT_MAX_CHARS]}"
    )


async def analyse_latest(
    db: AsyncSession,
    responder: Optional[TextResponder] = None,
) -> tuple[SummaryRecord, str]:
    """
    Analyse the newest stored record.

    Returns (record, analysis text).
    Raises:
        LookupError            — the store is empty (route maps to 404)
        NothingToAnalyseError  — newest record has no summary or voice text (400)
        StoreUnavailableError  — from the store read (500)
    """
    latest = await latest_summaries(db, limit=1)
    if not latest:
        raise LookupError("No summaries stored yet")
    record = latest[0]

    text = capture_text(record)
    if not text:
        raise NothingToAnalyseError("Latest summary has no text to analyse")

    prompt = ANALYSIS_INSTRUCTION + text[:ANALYSIS_MAX_CHARS]
    logger.info("Analysing latest summary id=%s text_len=%d", record.id, len(text))
    analysis = await resolve(
        "Analyse my latest capture",
        responder,
        classifier=_analysis_request,
        remote_prompt=prompt,
    )
    return record, analysis
