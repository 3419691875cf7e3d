"""
schemas.py — Session Store Pydantic v2 data contracts.

Defines:
  - SummaryType       enum (brief / detailed / bullets / voice_and_summary)
  - SessionType       enum (summary_only / voice_only / dual)
  - SummaryCreate     (incoming capture from the extension — every recognised field + default)
  - SummaryRecord     (stored record as returned to clients)
  - LegacySummarizeRequest (first extension build: {content, url})

Wire format is camelCase (pageTitle, summaryText, ...). Python attribute names
stay snake_case; populate_by_name lets tests and internal callers use either.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SummaryType(str, Enum):
    brief = "brief"
    detailed = "detailed"
    bullets = "bullets"
    voice_and_summary = "voice_and_summary"


class SessionType(str, Enum):
    summary_only = "summary_only"
    voice_only = "voice_only"
    dual = "dual"


# Session types that count as a "voice session" (union with non-empty voice text)
VOICE_SESSION_TYPES = (SessionType.voice_only, SessionType.dual)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# SummaryCreate — incoming capture
# ---------------------------------------------------------------------------

class SummaryCreate(_CamelModel):
    """
    Incoming capture from the browser extension.

    url presence and "at least one of summaryText / voiceText" are checked by
    store.create_summary() so the error names the field (400), not by Pydantic.
    Derived fields (sessionType, lengths) are honoured when supplied explicitly.
    """

    url: Optional[str] = None
    page_title: Optional[str] = None
    summary_text: Optional[str] = None
    voice_text: Optional[str] = None
    summary_type: SummaryType = SummaryType.brief
    session_type: Optional[SessionType] = None
    summary_length: Optional[int] = Field(default=None, ge=0)
    voice_length: Optional[int] = Field(default=None, ge=0)
    session_duration: int = Field(default=0, ge=0, description="Capture duration in ms")
    user_agent: Optional[str] = None


# ---------------------------------------------------------------------------
# SummaryRecord — stored record
# ---------------------------------------------------------------------------

class SummaryRecord(_CamelModel):
    """A persisted capture session, serialised with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    url: str
    page_title: str
    summary_text: Optional[str] = None
    voice_text: Optional[str] = None
    summary_type: SummaryType
    session_type: SessionType
    summary_length: int
    voice_length: int
    session_duration: int
    tags: List[str] = Field(default_factory=list)
    user_agent: Optional[str] = None
    is_archived: bool = False
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Legacy /summarize body
# ---------------------------------------------------------------------------

class LegacySummarizeRequest(BaseModel):
    """Body sent by the first extension build: the summary text and the page URL."""
    model_config = ConfigDict(extra="ignore")

    content: Optional[str] = None
    url: Optional[str] = None


__all__ = [
    "SummaryType",
    "SessionType",
    "VOICE_SESSION_TYPES",
    "SummaryCreate",
    "SummaryRecord",
    "LegacySummarizeRequest",
]
