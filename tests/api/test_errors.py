"""Tests for api/errors.py - exception to HTTP status mapping."""

import pytest
from fastapi import FastAPI
from pydantic import BaseModel
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.exceptions import (
    AccountDisabledError,
    DuplicateEmailError,
    ExpiredTokenError,
    InvalidAccountError,
    InvalidTokenError,
    LastAuthMethodError,
    MissingEmailError,
    MissingProviderIdError,
    PasswordMismatchError,
    SessionRevokedError,
    ThrottledError,
    UsernameTakenError,
    WeakPasswordError,
)

RAISES = {
    "weak": WeakPasswordError("Weak password"),
    "mismatch": PasswordMismatchError("Password mismatch"),
    "expired": ExpiredTokenError("Expired token"),
    "invalid": InvalidTokenError("Invalid token"),
    "disabled": AccountDisabledError("Account is disabled"),
    "missing_email": MissingEmailError("No email"),
    "missing_id": MissingProviderIdError("No id"),
    "invalid_account": InvalidAccountError("Invalid account"),
    "revoked": SessionRevokedError("revoked"),
    "last": LastAuthMethodError("Cannot unlink"),
    "duplicate": DuplicateEmailError("exists"),
    "username": UsernameTakenError("taken"),
    "throttled": ThrottledError(retry_after_seconds=3600),
    "boom": RuntimeError("kaboom"),
}


class Payload(BaseModel):
    count: int


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/raise/{name}")
    def raise_named(name: str):
        raise RAISES[name]

    @app.post("/validate")
    def validate(body: Payload):
        return body

    return TestClient(app, raise_server_exceptions=False)


class TestStatusMapping:
    @pytest.mark.parametrize("name,status,code", [
        ("weak", 400, "WEAK_PASSWORD"),
        ("mismatch", 400, "PASSWORD_MISMATCH"),
        ("expired", 400, "EXPIRED_TOKEN"),
        ("invalid", 400, "INVALID_TOKEN"),
        ("disabled", 403, "ACCOUNT_DISABLED"),
        ("missing_email", 401, "NOT_AUTHENTICATED"),
        ("missing_id", 401, "NOT_AUTHENTICATED"),
        ("invalid_account", 401, "NOT_AUTHENTICATED"),
        ("revoked", 401, "SESSION_REVOKED"),
        ("last", 409, "LAST_AUTH_METHOD"),
        ("duplicate", 409, "ALREADY_EXISTS"),
        ("username", 409, "ALREADY_EXISTS"),
        ("throttled", 429, "RATE_LIMITED"),
        ("boom", 500, "INTERNAL_ERROR"),
    ])
    def test_maps(self, client, name, status, code):
        response = client.get(f"/raise/{name}")

        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == code

    def test_throttled_sets_retry_after(self, client):
        response = client.get("/raise/throttled")

        assert response.headers["Retry-After"] == "3600"

    def test_internal_error_hides_message(self, client):
        response = client.get("/raise/boom")

        assert "kaboom" not in response.text

    def test_request_id_in_error_body(self, client):
        response = client.get("/raise/weak", headers={"X-Request-ID": "trace-1"})

        assert response.json()["meta"]["request_id"] == "trace-1"

    def test_validation_error(self, client):
        response = client.post("/validate", json={"count": "not-a-number"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
