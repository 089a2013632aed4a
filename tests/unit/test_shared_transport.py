"""
Tests for the WebSocket event envelope and the rate limiting middleware.
"""
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from shared.app import configure_app
from shared.config import ServiceSettings
from shared.middleware.rate_limit import RateLimitMiddleware
from shared.websocket import decode_event, encode_event


class TestEventEnvelope:
    """{"event", "data"} frames."""

    def test_encode(self):
        """Frames carry the event name and data."""
        assert json.loads(encode_event("chat", {"message": "hi"})) == {"event": "chat", "data": {"message": "hi"}}

    def test_encode_without_data(self):
        """Missing data is sent as an empty object."""
        assert json.loads(encode_event("logout")) == {"event": "logout", "data": {}}

    def test_decode(self):
        """A well-formed frame yields (event, data)."""
        assert decode_event('{"event": "login", "data": {"agentId": "a"}}') == ("login", {"agentId": "a"})

    def test_decode_null_data(self):
        """Null data decodes as an empty object."""
        assert decode_event('{"event": "logout", "data": null}') == ("logout", {})

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"data": {}}', '{"event": 5}', ""])
    def test_decode_malformed(self, raw):
        """Malformed frames decode to (None, None)."""
        assert decode_event(raw) == (None, None)


class TestSettings:
    """Shared settings helpers."""

    def test_cors_origins_list(self):
        """Comma-separated origins are split and trimmed."""
        settings = ServiceSettings(CORS_ORIGINS="https://a.example, https://b.example,")
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    @pytest.mark.parametrize(
        "environment, flag, active",
        [
            ("development", None, False),
            ("production", None, True),
            ("development", "true", True),
            ("production", "false", False),
        ],
    )
    def test_rate_limit_tri_state(self, environment, flag, active):
        """Unset follows ENVIRONMENT; true and false force it."""
        settings = ServiceSettings(ENVIRONMENT=environment, RATE_LIMIT_ENABLED=flag)
        assert settings.rate_limit_active is active


class TestRateLimit:
    """Fixed-window limit per client IP."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        configure_app(app, ServiceSettings(RATE_LIMIT_ENABLED="true", RATE_LIMIT_LIMIT=2, LOG_FORMAT="text"))

        @app.get("/api/ping")
        def ping():
            return {"pong": True}

        return TestClient(app)

    def test_limit_exceeded(self, client):
        """Requests beyond the limit get 429 with Retry-After."""
        assert client.get("/api/ping").status_code == 200
        assert client.get("/api/ping").status_code == 200
        response = client.get("/api/ping")
        assert response.status_code == 429
        assert response.json()["message"] == "Too many requests, please try again later."
        assert int(response.headers["Retry-After"]) >= 1

    def test_health_is_not_limited(self, client):
        """Skip paths are never counted."""
        for _ in range(5):
            assert client.get("/api/health").status_code == 200

    def test_expired_buckets_are_swept(self):
        """Buckets from finished windows do not accumulate."""
        middleware = RateLimitMiddleware(FastAPI(), ServiceSettings(RATE_LIMIT_ENABLED="true", LOG_FORMAT="text"))
        middleware.buckets = {
            "10.0.0.1": {"count": 3, "window_start": 1000},
            "10.0.0.2": {"count": 1, "window_start": 1050},
        }

        middleware._sweep(1070)

        assert list(middleware.buckets) == ["10.0.0.2"]

    @pytest.mark.asyncio
    async def test_dispatch_sweeps_stale_clients(self):
        middleware = RateLimitMiddleware(FastAPI(), ServiceSettings(RATE_LIMIT_ENABLED="true", LOG_FORMAT="text"))
        middleware.buckets["10.0.0.1"] = {"count": 3, "window_start": 0}
        request = Request(
            {
                "type": "http",
                "method": "GET",
                "path": "/api/ping",
                "headers": [],
                "query_string": b"",
                "client": ("10.0.0.2", 50000),
            }
        )

        await middleware.dispatch(request, AsyncMock(return_value=None))

        assert list(middleware.buckets) == ["10.0.0.2"]
