"""
Interaction Log tests — both backends run the same behavioural checks.

Cap policy under test: more than 1000 entries → keep the newest 500, in one pass,
checked after every append (hysteresis, not a rolling window).
"""
from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from summary_backend.errors import StoreUnavailableError
from summary_backend.interaction_log import (
    LOG_MAX_ENTRIES,
    LOG_RETAIN_ENTRIES,
    FileInteractionLog,
    SqlInteractionLog,
    build_interaction_log,
)


@pytest.fixture(params=["database", "file"])
def make_log(request, session_factory, tmp_path):
    """Factory building a log of the parametrised backend with optional custom caps."""

    def _make(**caps):
        if request.param == "database":
            return SqlInteractionLog(session_factory, **caps)
        return FileInteractionLog(tmp_path / "chat_history.json", **caps)

    return _make


@pytest.mark.asyncio
async def test_history_is_insertion_ordered_per_session(make_log) -> None:
    log = make_log()
    await log.append("a", "q1", "a1")
    await log.append("b", "other", "x")
    await log.append("a", "q2", "a2")

    history = await log.history("a")
    assert [e.question for e in history] == ["q1", "q2"]
    assert [e.answer for e in history] == ["a1", "a2"]
    assert all(e.session_id == "a" for e in history)
    assert await log.history("missing") == []


@pytest.mark.asyncio
async def test_append_returns_timestamped_entry(make_log) -> None:
    log = make_log()
    entry = await log.append("s1", "hi", "hello")
    assert entry.session_id == "s1"
    assert entry.time.tzinfo is not None
    assert entry.to_wire()["sessionId"] == "s1"


@pytest.mark.asyncio
async def test_clear_removes_only_matching_session(make_log) -> None:
    log = make_log()
    for i in range(3):
        await log.append("gone", f"q{i}", "a")
    await log.append("kept", "q", "a")

    assert await log.clear("gone") == 3
    assert await log.history("gone") == []
    assert len(await log.history("kept")) == 1
    assert await log.clear("gone") == 0
    assert await log.count() == 1


@pytest.mark.asyncio
async def test_1001_appends_leave_newest_500(make_log) -> None:
    log = make_log()
    total = LOG_MAX_ENTRIES + 1
    for i in range(total):
        await log.append(f"s{i % 3}", f"q{i}", f"a{i}")

    assert await log.count() == LOG_RETAIN_ENTRIES
    survivors = []
    for key in ("s0", "s1", "s2"):
        survivors.extend(int(e.question[1:]) for e in await log.history(key))
    assert sorted(survivors) == list(range(total - LOG_RETAIN_ENTRIES, total))


@pytest.mark.asyncio
async def test_cap_is_hysteresis_not_rolling_window(make_log) -> None:
    log = make_log(max_entries=10, retain_entries=5)
    for i in range(10):
        await log.append("s", f"q{i}", "a")
    assert await log.count() == 10          # at the cap, nothing evicted

    await log.append("s", "q10", "a")
    assert await log.count() == 5           # over the cap → newest 5 kept

    for i in range(11, 16):
        await log.append("s", f"q{i}", "a")
    assert await log.count() == 10          # grows again until the next breach

    history = await log.history("s")
    assert [e.question for e in history] == [f"q{i}" for i in range(6, 16)]


@pytest.mark.asyncio
async def test_concurrent_appends_never_double_evict(make_log) -> None:
    log = make_log(max_entries=20, retain_entries=10)
    await asyncio.gather(*(log.append("s", f"q{i}", "a") for i in range(21)))
    assert await log.count() == 10


@pytest.mark.asyncio
async def test_enforce_cap_is_a_noop_under_the_cap(make_log) -> None:
    log = make_log(max_entries=10, retain_entries=5)
    for i in range(4):
        await log.append("s", f"q{i}", "a")
    assert await log.enforce_cap() == 0
    assert await log.count() == 4


def test_invalid_caps_rejected() -> None:
    with pytest.raises(ValueError):
        SqlInteractionLog(MagicMock(), max_entries=5, retain_entries=6)


# ---------------------------------------------------------------------------
# File backend specifics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_file_log_persists_every_mutation(tmp_path) -> None:
    path = tmp_path / "history.json"
    log = FileInteractionLog(path)
    await log.append("s1", "hi", "hello")
    await log.append("s2", "q", "a")

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["sessionId"] for item in on_disk] == ["s1", "s2"]

    await log.clear("s1")
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["sessionId"] for item in on_disk] == ["s2"]


@pytest.mark.asyncio
async def test_file_log_reloads_from_disk(tmp_path) -> None:
    path = tmp_path / "history.json"
    first = FileInteractionLog(path)
    await first.append("s1", "hi", "hello")

    reopened = FileInteractionLog(path)
    history = await reopened.history("s1")
    assert [(e.question, e.answer) for e in history] == [("hi", "hello")]


def test_file_log_rejects_corrupt_file(tmp_path) -> None:
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreUnavailableError):
        FileInteractionLog(path)


def test_build_interaction_log_picks_backend(tmp_path) -> None:
    session_factory = MagicMock()
    assert isinstance(
        build_interaction_log("database", session_factory, str(tmp_path / "x.json")),
        SqlInteractionLog,
    )
    assert isinstance(
        build_interaction_log("file", session_factory, str(tmp_path / "x.json")),
        FileInteractionLog,
    )
    with pytest.raises(ValueError):
        build_interaction_log("redis", session_factory, "x.json")
