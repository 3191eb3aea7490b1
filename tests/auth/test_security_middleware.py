"""Tests for AuthMiddleware - session validation on protected routes."""

import threading
from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from auth.exceptions import SessionExpiredError, SessionRevokedError
from auth.security_middleware import SESSION_COOKIE, AuthMiddleware
from auth.session import SessionManager
from auth.types import Session
from utils.timezone import now_utc


def make_session(account_id=None) -> Session:
    now = now_utc()
    return Session(
        token="valid-token",
        account_id=account_id or uuid4(),
        token_version=1,
        created_at=now,
        expires_at=now + timedelta(hours=1),
        last_activity_at=now,
    )


@pytest.fixture
def mock_session_manager():
    """Mock SessionManager."""
    return Mock(spec=SessionManager)


@pytest.fixture
def client(mock_session_manager):
    """TestClient over an app with auth middleware."""
    app = FastAPI()
    app.add_middleware(AuthMiddleware, session_manager=mock_session_manager)

    @app.get("/auth/oauth/linked")
    async def protected_route(request: Request):
        return {"account_id": str(request.state.account_id)}

    @app.get("/auth/oauth/providers")
    async def providers():
        return {"public": True}

    @app.post("/auth/password/forgot")
    async def forgot():
        return {"public": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return TestClient(app)


class TestPublicPaths:
    """Public paths skip authentication."""

    @pytest.mark.parametrize("method,path", [
        ("get", "/auth/oauth/providers"),
        ("post", "/auth/password/forgot"),
        ("get", "/health"),
    ])
    def test_no_credentials_succeeds(self, client, mock_session_manager, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 200
        mock_session_manager.validate_session.assert_not_called()

    def test_public_path_with_invalid_cookie_still_succeeds(self, client, mock_session_manager):
        mock_session_manager.validate_session.side_effect = SessionExpiredError("expired")
        client.cookies.set(SESSION_COOKIE, "stale")

        response = client.get("/auth/oauth/providers")

        assert response.status_code == 200


class TestProtectedPaths:
    """Protected paths require a valid session."""

    def test_no_credentials_returns_401(self, client):
        response = client.get("/auth/oauth/linked")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_AUTHENTICATED"

    def test_valid_cookie_sets_account_id(self, client, mock_session_manager):
        session = make_session()
        mock_session_manager.validate_session.return_value = session
        client.cookies.set(SESSION_COOKIE, "valid-token")

        response = client.get("/auth/oauth/linked")

        assert response.status_code == 200
        assert response.json()["account_id"] == str(session.account_id)
        mock_session_manager.validate_session.assert_called_once_with("valid-token")

    def test_bearer_header_accepted(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = make_session()

        response = client.get("/auth/oauth/linked", headers={"Authorization": "Bearer valid-token"})

        assert response.status_code == 200
        mock_session_manager.validate_session.assert_called_once_with("valid-token")

    def test_bearer_header_wins_over_cookie(self, client, mock_session_manager):
        mock_session_manager.validate_session.return_value = make_session()
        client.cookies.set(SESSION_COOKIE, "cookie-token")

        client.get("/auth/oauth/linked", headers={"Authorization": "Bearer header-token"})

        mock_session_manager.validate_session.assert_called_once_with("header-token")

    def test_expired_session_returns_401(self, client, mock_session_manager):
        mock_session_manager.validate_session.side_effect = SessionExpiredError("expired")
        client.cookies.set(SESSION_COOKIE, "old")

        response = client.get("/auth/oauth/linked")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_EXPIRED"

    def test_revoked_session_returns_401(self, client, mock_session_manager):
        """Sessions issued before a password reset are rejected."""
        mock_session_manager.validate_session.side_effect = SessionRevokedError("revoked")
        client.cookies.set(SESSION_COOKIE, "old")

        response = client.get("/auth/oauth/linked")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_REVOKED"


class TestValidationThread:
    def test_validation_runs_off_the_event_loop(self, mock_session_manager):
        seen = {}

        def validate(token):
            seen["validate"] = threading.get_ident()
            return make_session()

        mock_session_manager.validate_session.side_effect = validate
        app = FastAPI()
        app.add_middleware(AuthMiddleware, session_manager=mock_session_manager)

        @app.get("/auth/me")
        async def me():
            seen["loop"] = threading.get_ident()
            return {}

        response = TestClient(app).get("/auth/me", headers={"Authorization": "Bearer t"})

        assert response.status_code == 200
        assert seen["validate"] != seen["loop"]
