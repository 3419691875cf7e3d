"""
derivation.py — Derived fields computed on every summary write.

Pure functions, no I/O:
  derive_session_type() — dual / voice_only / summary_only from text presence
  text_length()         — character count, None-safe
  derive_tags()         — up to 3 tags from the fixed keyword vocabulary
"""
import re
from typing import Optional

from summary_backend.api.summaries.schemas import SessionType

MAX_TAGS = 3

# Tag vocabulary — dict order is the tag order on the stored record
TAG_KEYWORDS: dict[str, list[str]] = {
    "technology": ["technology", "software", "computer", "app", "internet", "digital"],
    "ai": ["ai", "artificial intelligence", "machine learning", "llm", "chatgpt", "neural"],
    "programming": ["code", "coding", "programming", "python", "javascript", "developer"],
    "business": ["business", "market", "startup", "company", "revenue", "sales"],
    "finance": ["finance", "stock", "investment", "bank", "crypto", "economy"],
    "health": ["health", "medical", "doctor", "disease", "fitness", "nutrition"],
    "science": ["science", "research", "study", "experiment", "physics", "biology"],
    "education": ["education", "learn", "learning", "course", "student", "tutorial"],
    "news": ["news", "breaking", "report", "politics", "election", "government"],
    "entertainment": ["movie", "music", "game", "gaming", "sport", "celebrity"],
}

# Whole-word, case-insensitive: "ai" must not match "said"
_TAG_PATTERNS: dict[str, re.Pattern[str]] = {
    tag: re.compile(
        r"\b(?:" + "|".join(re.escape(kw) for kw in keywords) + r")\b",
        re.IGNORECASE,
    )
    for tag, keywords in TAG_KEYWORDS.items()
}


def has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def text_length(value: Optional[str]) -> int:
    return len(value) if value else 0


def derive_session_type(summary_text: Optional[str], voice_text: Optional[str]) -> SessionType:
    """Both texts → dual; only voice → voice_only; anything else → summary_only."""
    has_summary = has_text(summary_text)
    has_voice = has_text(voice_text)
    if has_summary and has_voice:
        return SessionType.dual
    if has_voice:
        return SessionType.voice_only
    return SessionType.summary_only


def derive_tags(summary_text: Optional[str], voice_text: Optional[str]) -> list[str]:
    """Return at most MAX_TAGS vocabulary tags found in summary + voice text, in vocabulary order."""
    combined = f"{summary_text or ''} {voice_text or ''}"
    if not combined.strip():
        return []
    tags = [tag for tag, pattern in _TAG_PATTERNS.items() if pattern.search(combined)]
    return tags[:MAX_TAGS]
