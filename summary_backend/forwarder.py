"""
forwarder.py — Best-effort webhook forwarding of newly captured summaries.

When settings.forward_url is set, every created record is POSTed as JSON to
that URL (a RequestBin-style collector, a Slack relay, ...). The shared
httpx.AsyncClient is created in main.py lifespan and stored on
app.state.http_client. Forwarding never fails the write: errors are logged
and swallowed here, the record is already stored.
"""
import logging
from typing import Optional

import httpx

from summary_backend.api.summaries.schemas import SummaryRecord
from summary_backend.config import settings

logger = logging.getLogger(__name__)

FORWARD_TOOL_NAME = "AI Summarizer Chrome Extension"


def build_forward_payload(record: SummaryRecord) -> dict:
    return {
        "tool": FORWARD_TOOL_NAME,
        "id": record.id,
        "pageUrl": record.url,
        "pageTitle": record.page_title,
        "summary": record.summary_text,
        "voice": record.voice_text,
        "sessionType": record.session_type.value,
        "time": record.timestamp.isoformat(),
    }


async def forward_summary(
    client: Optional[httpx.AsyncClient],
    record: SummaryRecord,
    url: Optional[str] = None,
) -> bool:
    """
    POST the record to the forward URL. Returns True if the collector accepted it.
    No client or no URL configured → False without a network call.
    """
    target = url if url is not None else settings.forward_url
    if client is None or not target:
        return False

    try:
        response = await client.post(
            target,
            json=build_forward_payload(record),
            timeout=settings.forward_timeout_seconds,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Forwarding failed id=%s error=%s", record.id, type(exc).__name__)
        return False

    logger.info("Forwarded summary id=%s status=%d", record.id, response.status_code)
    return True
