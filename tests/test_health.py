"""Smoke tests for the application wiring."""

import pytest
from httpx import ASGITransport, AsyncClient

from backend.main import app


@pytest.mark.asyncio
async def test_health_and_routers_mounted(db_tables) -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        health = await client.get("/health")
        decks = await client.get("/api/decks", params={"owner_id": "nobody"})
        stats = await client.get("/api/stats/missing")
        session = await client.get("/api/session/missing")
    assert health.status_code == 200
    assert health.json() == {"status": "ok"}
    assert decks.status_code == 200
    assert decks.json() == []
    assert stats.json()["error"] == "NotFound"
    assert session.status_code == 404
