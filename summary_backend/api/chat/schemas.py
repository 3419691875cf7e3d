"""
schemas.py — Chat / Interaction Log Pydantic v2 data contracts.

Defines:
  - ChatRequest       (incoming chat question from the extension popup)
  - InteractionEntry  (one logged question/answer pair)
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_SESSION_ID = "default"


class ChatRequest(BaseModel):
    """
    Incoming chat question.

    question may be empty or blank — the route answers with guidance instead of a 400.
    analyse=True prepends the newest stored summary/voice text as context.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    question: Optional[str] = ""
    session_id: str = Field(default=DEFAULT_SESSION_ID, max_length=128)
    analyse: bool = False

    @field_validator("session_id")
    @classmethod
    def _default_blank_session(cls, value: str) -> str:
        return value.strip() or DEFAULT_SESSION_ID


class InteractionEntry(BaseModel):
    """A single question/answer exchange. Immutable once appended."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    session_id: str
    question: str
    answer: str
    time: datetime

    @field_validator("time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


__all__ = ["DEFAULT_SESSION_ID", "ChatRequest", "InteractionEntry"]
