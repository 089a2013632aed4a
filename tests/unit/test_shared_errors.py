"""
Tests for the shared error payloads and exception handlers.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, field_validator

from shared.app import configure_app
from shared.config import ServiceSettings
from shared.errors import (
    APIException,
    BadRequestError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from shared.schemas import require_text


class Payload(BaseModel):
    name: str
    port: int

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return require_text(value, "Name is required")


@pytest.fixture
def client():
    app = FastAPI()
    configure_app(app, ServiceSettings(RATE_LIMIT_ENABLED="false", LOG_FORMAT="text"))

    @app.get("/missing")
    def missing():
        raise NotFoundError("Agent with ID 'abc' not found")

    @app.get("/down")
    def down():
        raise ServiceUnavailableError("Docker daemon unreachable")

    @app.post("/payload")
    def payload(body: Payload):
        return body.model_dump()

    return TestClient(app)


class TestExceptionTypes:
    """Status codes carried by the exception classes."""

    @pytest.mark.parametrize(
        "exc, status",
        [
            (BadRequestError("bad"), 400),
            (UnauthorizedError(), 401),
            (ForbiddenError(), 403),
            (NotFoundError("gone"), 404),
            (ServiceUnavailableError("later"), 503),
        ],
    )
    def test_status_codes(self, exc, status):
        """Each subclass maps to its HTTP status."""
        assert exc.status_code == status

    def test_message_is_kept_verbatim(self):
        """The message is exposed unchanged for remote callers."""
        exc = BadRequestError("Client with name 'alpha' already exists")
        assert exc.message == "Client with name 'alpha' already exists"
        assert str(exc) == exc.message

    def test_to_response_shape(self):
        """Payload uses statusCode, error phrase and error_code."""
        body = NotFoundError("nope").to_response()
        assert body["statusCode"] == 404
        assert body["message"] == "nope"
        assert body["error"] == "Not Found"
        assert body["error_code"] == ErrorCode.RESOURCE_NOT_FOUND.value
        assert body["request_id"].startswith("req_")
        assert "details" not in body

    def test_unknown_code_defaults_to_500(self):
        """An unmapped error code is an internal error."""
        assert APIException("SOMETHING_NEW", "x").status_code == 500


class TestExceptionHandlers:
    """Rendering through the registered FastAPI handlers."""

    def test_api_exception_rendered(self, client):
        """APIException subclasses become JSON with their status."""
        response = client.get("/missing")
        assert response.status_code == 404
        assert response.json()["message"] == "Agent with ID 'abc' not found"

    def test_server_errors_rendered(self, client):
        """5xx exceptions are rendered the same way."""
        response = client.get("/down")
        assert response.status_code == 503
        assert response.json()["error"] == "Service Unavailable"

    def test_validation_error_is_400(self, client):
        """Request validation failures are 400 with field-prefixed messages."""
        response = client.post("/payload", json={"name": " ", "port": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "name: Name is required" in body["message"]
        assert "port:" in body["message"]

    def test_unknown_route_is_404_payload(self, client):
        """Framework 404s use the same payload shape."""
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.json()["statusCode"] == 404

    def test_health_is_public(self, client):
        """The health route needs no credentials."""
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert isinstance(response.json()["timestamp"], int)
