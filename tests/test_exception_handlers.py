"""Tests for global exception handlers.

Validates that every domain error maps to its HTTP status code with the same
JSON envelope, and that unexpected failures never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kagi_relay.core.errors import (
    AppError,
    ConfigurationError,
    DirectMessageNotAllowedError,
    EvaluationError,
    KagiAppError,
    QuotaExceededAppError,
    StorageError,
    ValidationAppError,
)
from kagi_relay.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client that returns handler responses instead of raising."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    "error_type, status_code",
    [
        (ValidationAppError, 400),
        (DirectMessageNotAllowedError, 403),
        (QuotaExceededAppError, 429),
        (KagiAppError, 502),
        (ConfigurationError, 500),
        (StorageError, 500),
        (EvaluationError, 500),
        (AppError, 400),
    ],
)
def test_status_code_for(error_type: type[AppError], status_code: int) -> None:
    assert status_code_for(error_type(code="c", message="m")) == status_code


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_quota_error_returns_429_with_message(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify the quota message reaches the caller verbatim."""
        @app_with_handlers.get("/test-quota")
        async def test_endpoint():
            raise QuotaExceededAppError(
                code="quota_exceeded",
                message="You have reached your query limit.",
                details={"scope": "search"},
            )

        response = client.get("/test-quota")

        assert response.status_code == 429
        data = response.json()
        assert data["error"]["code"] == "quota_exceeded"
        assert data["error"]["message"] == "You have reached your query limit."
        assert data["error"]["details"] == {"scope": "search"}
        assert "request_id" in data["error"]

    def test_kagi_error_returns_502(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-kagi")
        async def test_endpoint():
            raise KagiAppError(code="kagi_unreachable", message="Could not reach the Kagi API")

        response = client.get("/test-kagi")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "kagi_unreachable"

    def test_details_omitted_when_absent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("database connection failed")

        response = client.get("/test-crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_server_error"
        assert error["message"] == (
            "There was an error executing this command! "
            "The error has been logged for investigation."
        )

    def test_general_exception_handler_never_leaks_details(self):
        """Verify exception text and stack traces are never included in response."""
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("secret path /etc/kagi")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert "/etc/kagi" not in response_text
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text
        assert "request_id" in data["error"]


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
