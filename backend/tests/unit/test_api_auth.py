"""Tests for the /api/auth endpoints.

The auth service runs for real on an in-memory token store; only the user
lookups are mocked.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from kajix.api.deps import get_auth_service
from kajix.core.auth import TokenKind, create_jwt
from kajix.core.config import settings
from kajix.core.rate_limiting import limiter
from kajix.main import app
from kajix.services.auth_service import AuthService
from kajix.services.token_store import DatabaseTokenStore, MemoryTokenStore, TokenKey
from tests.conftest import TEST_PASSWORD, TEST_USER_ID

_REPO_PATH = "kajix.services.auth_service.UserRepository"
_TOKEN_REPO_PATH = "kajix.services.token_store.TemporaryTokenRepository"


@pytest.fixture
def user_repo(test_user):
    with patch(_REPO_PATH) as repo:
        repo.get_by_identifier = AsyncMock(return_value=test_user)
        repo.get_by_id = AsyncMock(return_value=test_user)
        repo.create = AsyncMock(return_value=test_user)
        yield repo


@pytest_asyncio.fixture
async def client(user_repo) -> AsyncGenerator[AsyncClient, None]:  # noqa: ARG001
    service = AuthService(AsyncMock(), MemoryTokenStore())
    app.dependency_overrides[get_auth_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _login(client: AsyncClient) -> dict:
    response = await client.post(
        "/api/auth/login", json={"email": "test@example.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 201
    return response.json()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestLogin:
    """Tests for POST /api/auth/login."""

    async def test_returns_token_pair_and_user(self, client, test_user):
        body = await _login(client)

        assert body["access_token"]
        assert body["refresh_token"]
        assert body["access_token"] != body["refresh_token"]
        assert body["user"]["id"] == str(test_user.id)
        assert body["user"]["email"] == "test@example.com"
        assert body["user"]["firstName"] == "Test"

    async def test_user_payload_has_no_password_material(self, client):
        body = await _login(client)
        assert not any("password" in key.lower() for key in body["user"])

    async def test_username_login(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "tester", "password": TEST_PASSWORD}
        )
        assert response.status_code == 201

    async def test_wrong_password_is_401(self, client):
        response = await client.post(
            "/api/auth/login",
            json={"email": "test@example.com", "password": "wrong-pass-1"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_missing_password_is_validation_error(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "test@example.com"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_rate_limited_after_five_attempts(self, client):
        limiter.reset()
        limiter.enabled = True
        try:
            statuses = [
                (
                    await client.post(
                        "/api/auth/login",
                        json={"email": "test@example.com", "password": "wrong-pass-1"},
                    )
                ).status_code
                for _ in range(6)
            ]
        finally:
            limiter.reset()

        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429


class TestRefresh:
    """Tests for POST /api/auth/refresh."""

    async def test_rotation(self, client):
        tokens = await _login(client)

        response = await client.post(
            "/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["refresh_token"] != tokens["refresh_token"]
        assert body["user"]["username"] == "tester"

    async def test_replay_is_401(self, client):
        tokens = await _login(client)
        payload = {"refresh_token": tokens["refresh_token"]}

        first = await client.post("/api/auth/refresh", json=payload)
        second = await client.post("/api/auth/refresh", json=payload)

        assert first.status_code == 200
        assert second.status_code == 401

    async def test_access_token_is_not_a_refresh_token(self, client):
        tokens = await _login(client)
        response = await client.post(
            "/api/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )
        assert response.status_code == 401


class TestLogout:
    """Tests for POST /api/auth/logout and /api/auth/logout-all."""

    async def test_requires_bearer_token(self, client):
        response = await client.post(
            "/api/auth/logout", json={"refresh_token": "whatever"}
        )
        assert response.status_code == 401

    async def test_logout_returns_true_and_kills_both_tokens(self, client):
        tokens = await _login(client)

        response = await client.post(
            "/api/auth/logout",
            json={"refresh_token": tokens["refresh_token"]},
            headers=_bearer(tokens["access_token"]),
        )

        assert response.status_code == 200
        assert response.json() is True

        refresh = await client.post(
            "/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refresh.status_code == 401

    async def test_second_logout_is_rejected_by_the_guard(self, client):
        tokens = await _login(client)
        request = {
            "json": {"refresh_token": tokens["refresh_token"]},
            "headers": _bearer(tokens["access_token"]),
        }

        first = await client.post("/api/auth/logout", **request)
        second = await client.post("/api/auth/logout", **request)

        assert first.status_code == 200
        assert second.status_code == 401

    async def test_logout_all_revokes_every_session(self, client):
        first = await _login(client)
        second = await _login(client)

        response = await client.post(
            "/api/auth/logout-all", headers=_bearer(first["access_token"])
        )

        assert response.status_code == 200
        assert response.json() == {"revoked": 4}
        refresh = await client.post(
            "/api/auth/refresh", json={"refresh_token": second["refresh_token"]}
        )
        assert refresh.status_code == 401


class TestRegister:
    """Tests for POST /api/auth/register."""

    async def test_creates_user(self, client, user_repo):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "test@example.com",
                "username": "tester",
                "password": "S3cure!pass",
                "firstName": "Test",
            },
        )

        assert response.status_code == 201
        assert response.json()["username"] == "tester"
        assert user_repo.create.await_args.kwargs["first_name"] == "Test"

    async def test_duplicate_is_409(self, client, user_repo):
        user_repo.create.side_effect = IntegrityError("stmt", {}, None)

        response = await client.post(
            "/api/auth/register",
            json={
                "email": "test@example.com",
                "username": "tester",
                "password": "S3cure!pass",
            },
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "USER_ALREADY_EXISTS"

    async def test_weak_password_is_400(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "username": "newbie", "password": "x"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_invalid_username_is_400(self, client):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "new@example.com",
                "username": "has spaces",
                "password": "S3cure!pass",
            },
        )
        assert response.status_code == 400


@pytest.fixture
def token_repo():
    with patch(_TOKEN_REPO_PATH) as repo:
        repo.mark_expired = AsyncMock(return_value=True)
        yield repo


@pytest_asyncio.fixture
async def db_store_client(
    token_repo,  # noqa: ARG001
) -> AsyncGenerator[tuple[AsyncClient, AsyncMock, AsyncMock], None]:
    """Client whose auth service uses DatabaseTokenStore on mocked sessions.

    Yields the client, the request session and the session opened for
    expiry bookkeeping.
    """
    request_db = AsyncMock()
    expiry_session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = expiry_session
    store = DatabaseTokenStore(request_db, session_factory=factory)
    app.dependency_overrides[get_auth_service] = lambda: AuthService(request_db, store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac, request_db, expiry_session

    app.dependency_overrides.clear()


def _access_token(expires_delta: timedelta) -> str:
    return create_jwt(
        user_id=str(TEST_USER_ID),
        email="test@example.com",
        username="tester",
        kind=TokenKind.ACCESS,
        secret=settings.auth_secret.get_secret_value(),
        expires_delta=expires_delta,
    )


class TestExpiredBearerToken:
    """An expired bearer token is recorded as expired even though the call fails."""

    async def test_expired_jwt_is_flagged_and_committed(
        self, db_store_client, token_repo
    ):
        client, request_db, expiry_session = db_store_client
        token = _access_token(timedelta(seconds=-1))

        response = await client.post("/api/auth/logout-all", headers=_bearer(token))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid token"
        token_repo.mark_expired.assert_awaited_once()
        call = token_repo.mark_expired.await_args
        assert call.args == (expiry_session,)
        assert call.kwargs == {
            "kind": "ACCESS_TOKEN",
            "user_id": TEST_USER_ID,
            "token_hash": TokenKey(TokenKind.ACCESS, TEST_USER_ID, token).token_hash,
        }
        expiry_session.commit.assert_awaited_once()
        request_db.commit.assert_not_awaited()

    async def test_lapsed_store_row_is_flagged_and_committed(
        self, db_store_client, token_repo
    ):
        client, _, expiry_session = db_store_client
        row = MagicMock(
            is_used=False,
            is_expired=False,
            revoked_at=None,
            expires_at=datetime.now(UTC) - timedelta(seconds=1),
        )
        token_repo.get = AsyncMock(return_value=row)

        response = await client.post(
            "/api/auth/logout-all",
            headers=_bearer(_access_token(timedelta(minutes=5))),
        )

        assert response.status_code == 401
        token_repo.mark_expired.assert_awaited_once()
        expiry_session.commit.assert_awaited_once()
        token_repo.revoke_all_for_user.assert_not_called()
