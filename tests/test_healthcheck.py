"""Tests for the health endpoints."""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from otterhound.main import app as main_app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=main_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def clean_state():
    yield
    for name in ("engine", "executor", "poll_tracker"):
        if hasattr(main_app.state, name):
            delattr(main_app.state, name)


class TestHealthcheck:

    async def test_before_startup(self, client):
        response = await client.get("/healthcheck")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "poll_enabled": False, "poll_cursor": None, "inflight": 0}

    async def test_reports_channel_state(self, client):
        main_app.state.poll_tracker = SimpleNamespace(cursor=1700000000)
        main_app.state.executor = SimpleNamespace(inflight=2)

        response = await client.get("/healthcheck")

        assert response.json() == {"status": "ok", "poll_enabled": True, "poll_cursor": 1700000000, "inflight": 2}


class TestDatabaseHealthcheck:

    async def test_unavailable_before_startup(self, client):
        response = await client.get("/healthcheck/db")
        assert response.json() == {"status": "unavailable"}

    async def test_healthy(self, client, engine):
        main_app.state.engine = engine

        response = await client.get("/healthcheck/db")

        assert response.json()["status"] == "healthy"
