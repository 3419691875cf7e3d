"""
errors.py — Domain exception taxonomy.

Raised by store.py / interaction_log.py / the chat resolver and translated
into the standard {success, error: {code, message, details}} envelope by the
handlers registered in main.py. None of these carry driver-specific text.
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy.exc import SQLAlchemyError


class SummaryValidationError(ValueError):
    """A required field is missing or blank on write. Maps to 400."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class StoreUnavailableError(RuntimeError):
    """
    Persistence backend unreachable or failed mid-operation. Maps to 500.

    The message is a generic "Failed to save/fetch ..." string; the original
    driver exception is chained (__cause__) and logged server-side only.
    """


class NothingToAnalyseError(ValueError):
    """The newest stored record has neither summary nor voice text. Maps to 400."""


class RemoteResponderError(RuntimeError):
    """
    Remote LLM call failed, timed out, or is not configured.
    Never reaches the HTTP caller — resolve() degrades to local answers.
    """


@contextmanager
def translate_store_errors(message: str, logger: logging.Logger) -> Iterator[None]:
    """Re-raise any SQLAlchemy failure inside the block as StoreUnavailableError(message)."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("%s (%s)", message, type(exc).__name__, exc_info=True)
        raise StoreUnavailableError(message) from exc


def error_body(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Standard {success: false, error: {code, message, details}} body."""
    return {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or [],
        },
    }
