"""
interaction_log.py — Bounded, append-only chat history.

One ledger of question/answer pairs shared by every chat session id.
Cap policy (hysteresis, not a rolling window):
  - after every append, if the log holds more than max_entries (1000),
    drop everything except the retain_entries (500) most recent, in one pass
  - append + cap check run under one asyncio.Lock per log instance, so two
    concurrent appends can never both see count > 1000 and double-evict

Backends:
  SqlInteractionLog   — interaction_log table; own session + commit per mutation
  FileInteractionLog  — entries resident in memory, whole log rewritten to a
                        JSON file on every mutation (reloaded at startup)

Created once in main.py lifespan and stored on app.state.interaction_log.
Logs only session ids and counts — never question or answer text.
"""
import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from summary_backend.api.chat.schemas import InteractionEntry
from summary_backend.errors import StoreUnavailableError, translate_store_errors
from summary_backend.models.interaction import InteractionORM

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cap constants
# ---------------------------------------------------------------------------
LOG_MAX_ENTRIES = 1000
LOG_RETAIN_ENTRIES = 500


class InteractionLog(ABC):
    """Append/history/clear over a size-capped ledger. Subclasses implement storage."""

    backend_name: str = "abstract"

    def __init__(
        self,
        max_entries: int = LOG_MAX_ENTRIES,
        retain_entries: int = LOG_RETAIN_ENTRIES,
    ) -> None:
        if not 0 < retain_entries <= max_entries:
            raise ValueError("retain_entries must be between 1 and max_entries")
        self.max_entries = max_entries
        self.retain_entries = retain_entries
        self._lock = asyncio.Lock()

    async def append(self, session_id: str, question: str, answer: str) -> InteractionEntry:
        """Append one exchange stamped with the current instant, then enforce the cap."""
        entry = InteractionEntry(
            session_id=session_id,
            question=question,
            answer=answer,
            time=datetime.now(timezone.utc),
        )
        async with self._lock:
            evicted = await self._append_locked(entry)
        if evicted:
            logger.info(
                "Interaction log truncated backend=%s evicted=%d retained=%d",
                self.backend_name, evicted, self.retain_entries,
            )
        logger.info("Appended interaction session_id=%s", session_id)
        return entry

    async def enforce_cap(self) -> int:
        """Apply the cap-then-truncate rule now. Returns how many entries were evicted."""
        async with self._lock:
            return await self._enforce_cap_locked()

    async def clear(self, session_id: str) -> int:
        """Remove every entry for session_id. Returns the number removed."""
        async with self._lock:
            removed = await self._clear_locked(session_id)
        logger.info("Cleared interactions session_id=%s removed=%d", session_id, removed)
        return removed

    @abstractmethod
    async def history(self, session_id: str) -> list[InteractionEntry]:
        """All entries for session_id in insertion order."""

    @abstractmethod
    async def count(self) -> int:
        """Total entries across every session id."""

    @abstractmethod
    async def _append_locked(self, entry: InteractionEntry) -> int:
        """Store entry and apply the cap in one unit. Returns evicted count."""

    @abstractmethod
    async def _enforce_cap_locked(self) -> int: ...

    @abstractmethod
    async def _clear_locked(self, session_id: str) -> int: ...


# ---------------------------------------------------------------------------
# Database backend
# ---------------------------------------------------------------------------

class SqlInteractionLog(InteractionLog):
    """Interaction log in the interaction_log table. Insertion order = autoincrement id."""

    backend_name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], **kwargs) -> None:
        super().__init__(**kwargs)
        self._session_factory = session_factory

    async def _trim(self, session: AsyncSession) -> int:
        total = (
            await session.execute(select(func.count()).select_from(InteractionORM))
        ).scalar_one()
        if total <= self.max_entries:
            return 0
        # id of the oldest entry that survives
        cutoff = (
            await session.execute(
                select(InteractionORM.id)
                .order_by(InteractionORM.id.desc())
                .offset(self.retain_entries - 1)
                .limit(1)
            )
        ).scalar_one()
        result = await session.execute(
            delete(InteractionORM).where(InteractionORM.id < cutoff)
        )
        return result.rowcount or 0

    async def _append_locked(self, entry: InteractionEntry) -> int:
        async with self._session_factory() as session:
            with translate_store_errors("Failed to save chat history", logger):
                session.add(
                    InteractionORM(
                        session_id=entry.session_id,
                        question=entry.question,
                        answer=entry.answer,
                        created_at=entry.time,
                    )
                )
                await session.flush()
                evicted = await self._trim(session)
                await session.commit()
        return evicted

    async def _enforce_cap_locked(self) -> int:
        async with self._session_factory() as session:
            with translate_store_errors("Failed to trim chat history", logger):
                evicted = await self._trim(session)
                await session.commit()
        return evicted

    async def _clear_locked(self, session_id: str) -> int:
        async with self._session_factory() as session:
            with translate_store_errors("Failed to clear chat history", logger):
                result = await session.execute(
                    delete(InteractionORM).where(InteractionORM.session_id == session_id)
                )
                await session.commit()
        return result.rowcount or 0

    async def history(self, session_id: str) -> list[InteractionEntry]:
        async with self._session_factory() as session:
            with translate_store_errors("Failed to fetch chat history", logger):
                result = await session.execute(
                    select(InteractionORM)
                    .where(InteractionORM.session_id == session_id)
                    .order_by(InteractionORM.id.asc())
                )
                rows = result.scalars().all()
        return [
            InteractionEntry(
                session_id=row.session_id,
                question=row.question,
                answer=row.answer,
                time=row.created_at,
            )
            for row in rows
        ]

    async def count(self) -> int:
        async with self._session_factory() as session:
            with translate_store_errors("Failed to fetch chat history", logger):
                result = await session.execute(
                    select(func.count()).select_from(InteractionORM)
                )
        return result.scalar_one()


# ---------------------------------------------------------------------------
# Flat-file backend
# ---------------------------------------------------------------------------

class FileInteractionLog(InteractionLog):
    """
    Interaction log kept in memory and persisted as one JSON array per mutation.

    Each mutation builds the next list, writes it to a temp file and renames it
    over the old one; memory is only swapped after the write succeeds.
    """

    backend_name = "file"

    def __init__(self, path: str | os.PathLike, **kwargs) -> None:
        super().__init__(**kwargs)
        self._path = Path(path)
        self._entries: list[InteractionEntry] = self._load()

    def _load(self) -> list[InteractionEntry]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
            entries = [InteractionEntry.model_validate(item) for item in raw]
        except (OSError, ValueError) as exc:
            logger.error("Could not load chat history file=%s", self._path, exc_info=True)
            raise StoreUnavailableError("Failed to load chat history") from exc
        logger.info("Loaded chat history file=%s entries=%d", self._path, len(entries))
        return entries

    def _write_snapshot(self, entries: list[InteractionEntry]) -> None:
        payload = [e.to_wire() for e in entries]
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self._path)

    async def _commit(self, entries: list[InteractionEntry]) -> None:
        try:
            await asyncio.to_thread(self._write_snapshot, entries)
        except OSError as exc:
            logger.error("Could not write chat history file=%s", self._path, exc_info=True)
            raise StoreUnavailableError("Failed to save chat history") from exc
        self._entries = entries

    def _trimmed(self, entries: list[InteractionEntry]) -> list[InteractionEntry]:
        if len(entries) > self.max_entries:
            return entries[-self.retain_entries:]
        return entries

    async def _append_locked(self, entry: InteractionEntry) -> int:
        candidate = self._entries + [entry]
        kept = self._trimmed(candidate)
        await self._commit(kept)
        return len(candidate) - len(kept)

    async def _enforce_cap_locked(self) -> int:
        kept = self._trimmed(self._entries)
        evicted = len(self._entries) - len(kept)
        if evicted:
            await self._commit(kept)
        return evicted

    async def _clear_locked(self, session_id: str) -> int:
        kept = [e for e in self._entries if e.session_id != session_id]
        removed = len(self._entries) - len(kept)
        if removed:
            await self._commit(kept)
        return removed

    async def history(self, session_id: str) -> list[InteractionEntry]:
        return [e for e in self._entries if e.session_id == session_id]

    async def count(self) -> int:
        return len(self._entries)


def build_interaction_log(
    backend: str,
    session_factory: async_sessionmaker[AsyncSession],
    path: str,
) -> InteractionLog:
    """Pick the configured backend (settings.interaction_log_backend)."""
    if backend == "file":
        return FileInteractionLog(path)
    if backend == "database":
        return SqlInteractionLog(session_factory)
    raise ValueError(f"Unknown interaction log backend: {backend!r}")
