"""
End-to-end API tests for the Session Store endpoints.

HTTP request → schema validation → store.py → SQLite → HTTP response, through
httpx ASGITransport (see conftest.client). Forwarding uses an httpx
MockTransport so no request leaves the process.
"""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from summary_backend.api.summaries.routes import LEGACY_UNKNOWN_URL
from summary_backend.config import settings
from summary_backend.database import get_db
from summary_backend.forwarder import FORWARD_TOOL_NAME
from summary_backend.main import app


async def _post(client: AsyncClient, **body) -> httpx.Response:
    body.setdefault("url", "http://example.com/article")
    return await client.post("/api/summaries", json=body)


# ---------------------------------------------------------------------------
# Test Group 1: POST /api/summaries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_then_latest(client: AsyncClient) -> None:
    response = await _post(client, pageTitle="T", summaryText="hello world")
    assert response.status_code == 201, response.text

    created = response.json()
    assert created["success"] is True
    assert created["sessionType"] == "summary_only"
    assert created["id"]

    latest = (await client.get("/api/summaries/latest", params={"limit": 1})).json()
    assert latest["count"] == 1
    record = latest["data"][0]
    assert record["id"] == created["id"]
    assert record["pageTitle"] == "T"
    assert record["summaryLength"] == 11
    assert record["voiceLength"] == 0
    assert record["summaryType"] == "brief"
    assert record["isArchived"] is False


@pytest.mark.asyncio
async def test_create_voice_and_dual(client: AsyncClient) -> None:
    voice = (await _post(client, voiceText="spoken")).json()
    dual = (await _post(client, summaryText="s", voiceText="v")).json()
    assert voice["sessionType"] == "voice_only"
    assert dual["sessionType"] == "dual"


@pytest.mark.asyncio
async def test_create_returns_tags(client: AsyncClient) -> None:
    body = (await _post(client, summaryText="New software for stock trading")).json()
    assert body["tags"] == ["technology", "finance"]


@pytest.mark.asyncio
async def test_create_without_url_names_the_field(client: AsyncClient) -> None:
    response = await client.post("/api/summaries", json={"summaryText": "text"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["field"] == "url"


@pytest.mark.asyncio
async def test_create_without_text_is_rejected(client: AsyncClient) -> None:
    response = await _post(client, summaryText="  ", voiceText="")
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "summaryText"

    listing = (await client.get("/api/summaries")).json()
    assert listing["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_create_with_unknown_session_type(client: AsyncClient) -> None:
    response = await _post(client, summaryText="x", sessionType="podcast")
    assert response.status_code == 400
    assert "sessionType" in response.json()["error"]["message"]


@pytest.mark.asyncio
async def test_create_with_negative_length(client: AsyncClient) -> None:
    response = await _post(client, summaryText="x", summaryLength=-1)
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Test Group 2: GET /api/summaries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_pagination_envelope(client: AsyncClient) -> None:
    for i in range(5):
        await _post(client, summaryText=f"summary {i}")

    body = (await client.get("/api/summaries", params={"page": 2, "limit": 2})).json()
    assert body["success"] is True
    assert len(body["data"]) == 2
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}

    beyond = (await client.get("/api/summaries", params={"page": 9, "limit": 2})).json()
    assert beyond["data"] == []
    assert beyond["pagination"]["total"] == 5


@pytest.mark.asyncio
async def test_list_is_newest_first(client: AsyncClient) -> None:
    ids = [(await _post(client, summaryText=f"s{i}")).json()["id"] for i in range(3)]
    body = (await client.get("/api/summaries")).json()
    assert [r["id"] for r in body["data"]] == list(reversed(ids))


@pytest.mark.asyncio
async def test_list_session_type_filter(client: AsyncClient) -> None:
    await _post(client, summaryText="s")
    await _post(client, voiceText="v")
    await _post(client, summaryText="s", voiceText="v")

    body = (await client.get("/api/summaries", params={"sessionType": "voice_only,dual"})).json()
    assert body["pagination"]["total"] == 2
    assert {r["sessionType"] for r in body["data"]} == {"voice_only", "dual"}


@pytest.mark.asyncio
async def test_list_rejects_unknown_filter(client: AsyncClient) -> None:
    response = await client.get("/api/summaries", params={"sessionType": "podcast"})
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "sessionType"


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"page": 0}, {"page": "abc"}])
async def test_list_rejects_bad_paging(client: AsyncClient, params: dict) -> None:
    response = await client.get("/api/summaries", params=params)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Test Group 3: latest / voice / by id / delete / stats
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_latest_default_limit_is_five(client: AsyncClient) -> None:
    for i in range(7):
        await _post(client, summaryText=f"s{i}")
    body = (await client.get("/api/summaries/latest")).json()
    assert body["count"] == 5


@pytest.mark.asyncio
async def test_voice_endpoint(client: AsyncClient) -> None:
    await _post(client, summaryText="no voice here")
    voice_id = (await _post(client, voiceText="v")).json()["id"]
    odd_id = (await _post(client, summaryText="s", voiceText="v", sessionType="summary_only")).json()["id"]

    body = (await client.get("/api/summaries/voice")).json()
    assert {r["id"] for r in body["data"]} == {voice_id, odd_id}


@pytest.mark.asyncio
async def test_get_and_delete_by_id(client: AsyncClient) -> None:
    summary_id = (await _post(client, summaryText="bye")).json()["id"]

    fetched = await client.get(f"/api/summaries/{summary_id}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["summaryText"] == "bye"

    deleted = await client.delete(f"/api/summaries/{summary_id}")
    assert deleted.status_code == 200
    assert deleted.json()["id"] == summary_id

    again = await client.delete(f"/api/summaries/{summary_id}")
    assert again.status_code == 404
    assert again.json()["error"]["code"] == "NOT_FOUND"

    missing = await client.get(f"/api/summaries/{summary_id}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_stats_reflect_writes(client: AsyncClient) -> None:
    await _post(client, summaryText="s")
    await _post(client, voiceText="v")

    body = (await client.get("/api/stats")).json()
    assert body["total"] == 2
    assert body["dayCount"] == 2
    assert body["voice"] == 1
    assert body["bySessionType"] == {"summary_only": 1, "voice_only": 1, "dual": 0}

    other_day = (await client.get("/api/stats", params={"day": "2001-01-01"})).json()
    assert other_day["day"] == "2001-01-01"
    assert other_day["dayCount"] == 0
    assert other_day["total"] == 2


# ---------------------------------------------------------------------------
# Test Group 4: legacy /summarize
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_legacy_summarize_stores_and_echoes(client: AsyncClient) -> None:
    response = await client.post(
        "/summarize", json={"content": "legacy summary", "url": "http://old.example"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == "legacy summary"

    record = (await client.get(f"/api/summaries/{body['id']}")).json()["data"]
    assert record["sessionType"] == "summary_only"
    assert record["url"] == "http://old.example"


@pytest.mark.asyncio
async def test_legacy_summarize_without_url(client: AsyncClient) -> None:
    response = await client.post("/summarize", json={"content": "no url sent"})
    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == "no url sent"

    record = (await client.get(f"/api/summaries/{body['id']}")).json()["data"]
    assert record["url"] == LEGACY_UNKNOWN_URL


@pytest.mark.asyncio
async def test_legacy_summarize_requires_content(client: AsyncClient) -> None:
    response = await client.post("/summarize", json={"content": "", "url": "http://x"})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "No summary received"


# ---------------------------------------------------------------------------
# Test Group 5: unknown routes, forwarding, store failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_route_lists_valid_routes(client: AsyncClient) -> None:
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    routes = {d["route"] for d in error["details"]}
    assert "POST /api/summaries" in routes
    assert "POST /api/chat" in routes
    assert "GET /api/health" in routes


@pytest.mark.asyncio
async def test_create_forwards_to_collector(client: AsyncClient, monkeypatch) -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200)

    monkeypatch.setattr(settings, "forward_url", "http://collector.test/hook")
    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    try:
        created = (await _post(client, pageTitle="Fwd", summaryText="forward me")).json()
    finally:
        await app.state.http_client.aclose()

    assert len(received) == 1
    assert received[0]["tool"] == FORWARD_TOOL_NAME
    assert received[0]["id"] == created["id"]
    assert received[0]["pageTitle"] == "Fwd"
    assert received[0]["summary"] == "forward me"


@pytest.mark.asyncio
async def test_forwarding_failure_does_not_fail_the_write(client: AsyncClient, monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    monkeypatch.setattr(settings, "forward_url", "http://collector.test/hook")
    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    try:
        response = await _post(client, summaryText="still stored")
    finally:
        await app.state.http_client.aclose()

    assert response.status_code == 201
    listing = (await client.get("/api/summaries")).json()
    assert listing["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_store_failure_returns_generic_500(client: AsyncClient) -> None:
    failure = OperationalError("INSERT", {}, Exception("password authentication failed for user x"))
    broken = MagicMock()
    broken.execute = AsyncMock(side_effect=failure)
    broken.flush = AsyncMock(side_effect=failure)

    async def _broken_db():
        yield broken

    app.dependency_overrides[get_db] = _broken_db

    response = await _post(client, summaryText="text")
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "STORE_UNAVAILABLE"
    assert error["message"] == "Failed to save summary"
    assert "password" not in response.text

    listing = await client.get("/api/summaries")
    assert listing.status_code == 500
    assert listing.json()["error"]["message"] == "Failed to fetch summaries"


@pytest.mark.asyncio
async def test_failed_commit_is_never_forwarded(
    client: AsyncClient, session_factory, monkeypatch
) -> None:
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    async def _db_with_failing_commit():
        async with session_factory() as session:
            session.commit = AsyncMock(
                side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))
            )
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(settings, "forward_url", "http://collector.test/hook")
    app.dependency_overrides[get_db] = _db_with_failing_commit
    app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    try:
        response = await _post(client, summaryText="never committed")
        legacy = await client.post("/summarize", json={"content": "never committed"})
    finally:
        await app.state.http_client.aclose()

    assert response.status_code == 500
    assert response.json()["error"]["message"] == "Failed to save summary"
    assert legacy.status_code == 500
    assert received == []
