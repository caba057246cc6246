"""Tests for FastAPI application and exception handlers."""

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from kajix.core.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    RequestTimeoutError,
    UnauthorizedError,
    ValidationError,
)
from kajix.main import create_app
from kajix.services.token_store import MemoryTokenStore


@pytest.fixture
def app():
    """Create test application instance."""
    return create_app()


@pytest.fixture
async def client(app):
    """Create async HTTP client for testing.

    The catch-all handler responds and then re-raises, so app exceptions are
    not propagated to the test.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    async def test_health_returns_healthy_status(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestRouting:
    async def test_api_router_mounted(self, client):
        """Unknown paths under /api are plain 404s."""
        response = await client.get("/api/nonexistent")
        assert response.status_code == 404

    async def test_token_store_follows_backend_setting(self):
        with patch("kajix.main.settings.token_store_backend", "memory"):
            memory_app = create_app()
        with patch("kajix.main.settings.token_store_backend", "database"):
            database_app = create_app()

        assert isinstance(memory_app.state.token_store, MemoryTokenStore)
        assert database_app.state.token_store is None


class TestExceptionHandlers:
    """Tests for exception handlers.

    Each error kind maps to its status code inside the standard envelope.
    """

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (ValidationError("Invalid input"), 400, "VALIDATION_ERROR"),
            (BadRequestError("Invalid URL provided"), 400, "BAD_REQUEST"),
            (UnauthorizedError(), 401, "UNAUTHORIZED"),
            (RequestTimeoutError("Navigation timeout"), 408, "REQUEST_TIMEOUT"),
            (ConflictError("USER_ALREADY_EXISTS", "Taken"), 409, "USER_ALREADY_EXISTS"),
            (InternalError(), 500, "INTERNAL_ERROR"),
        ],
    )
    async def test_api_errors_map_to_status(self, app, client, error, status, code):
        @app.get("/test/api-error")
        async def raise_api_error():
            raise error

        response = await client.get("/test/api-error")

        assert response.status_code == status
        assert response.json()["error"]["code"] == code
        assert response.json()["error"]["message"] == error.message

    async def test_validation_details_are_passed_through(self, app, client):
        @app.get("/test/validation-error")
        async def raise_validation_error():
            raise ValidationError("Invalid input", details=[{"field": "test"}])

        response = await client.get("/test/validation-error")

        assert response.json()["error"]["details"] == [{"field": "test"}]

    async def test_request_validation_is_400(self, client):
        """Pydantic request errors use 400, not FastAPI's default 422."""
        response = await client.post("/api/auth/refresh", json={})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["loc"] == ["body", "refresh_token"]

    async def test_unhandled_exception_is_500_without_details(self, app, client):
        @app.get("/test/unhandled")
        async def raise_unhandled():
            raise RuntimeError("connection string with password=hunter2")

        response = await client.get("/test/unhandled")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.text


class TestCORS:
    async def test_cors_allows_configured_origin(self):
        with patch("kajix.main.settings.allowed_origins", ["http://allowed.com"]):
            test_app = create_app()

        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            allowed = await ac.get("/health", headers={"Origin": "http://allowed.com"})
            denied = await ac.get("/health", headers={"Origin": "http://evil.com"})

        assert allowed.headers["access-control-allow-origin"] == "http://allowed.com"
        assert "access-control-allow-origin" not in denied.headers


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    async def test_standard_headers(self, client):
        response = await client.get("/health")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert (
            response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        )
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]

    async def test_cache_control_on_api_endpoints_only(self, client):
        api = await client.get("/api/nonexistent")
        health = await client.get("/health")

        assert api.headers["Cache-Control"] == "no-store, max-age=0"
        assert "Cache-Control" not in health.headers

    async def test_hsts_header_not_in_development(self, client):
        response = await client.get("/health")
        assert "Strict-Transport-Security" not in response.headers

    async def test_hsts_header_in_production(self, client, monkeypatch):
        from kajix.core.config import settings

        monkeypatch.setattr(settings, "environment", "production")
        response = await client.get("/health")

        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]
