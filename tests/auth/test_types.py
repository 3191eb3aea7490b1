"""Tests for auth/types.py - Pydantic models for the identity domain."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from auth.types import (
    Account,
    AccountView,
    OAuthLink,
    OAuthProfile,
    ResetRequest,
)


def _now():
    return datetime.now(timezone.utc)


class TestOAuthProfile:
    def test_is_immutable(self):
        profile = OAuthProfile(
            provider="google", provider_id="1", email="", display_name="", avatar_url=""
        )
        with pytest.raises(ValidationError):
            profile.email = "changed@example.com"


class TestOAuthLinkValidation:
    def test_rejects_unknown_provider(self):
        with pytest.raises(ValidationError):
            OAuthLink(provider="github", provider_id="1", linked_at=_now())

    def test_snapshot_defaults_empty(self):
        link = OAuthLink(provider="nextcloud", provider_id="n1", linked_at=_now())
        assert link.email == ""
        assert link.last_used_at is None


class TestAccount:
    def _account(self, **overrides):
        now = _now()
        fields = dict(
            id=uuid4(),
            email="test@example.com",
            username="test",
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return Account(**fields)

    def test_rejects_missing_id(self):
        with pytest.raises(ValidationError):
            Account(email="test@example.com", username="t", created_at=_now(), updated_at=_now())

    def test_has_password(self):
        assert self._account(password_hash="$argon2id$x").has_password is True
        assert self._account().has_password is False

    def test_view_hides_password_hash(self):
        account = self._account(
            password_hash="$argon2id$x",
            oauth_links=[OAuthLink(provider="google", provider_id="g1", linked_at=_now())],
        )

        view = AccountView.from_account(account)

        assert "password_hash" not in view.model_dump()
        assert view.has_password is True
        assert view.linked_providers == ["google"]


class TestResetRequest:
    def _request(self, **overrides):
        now = _now()
        fields = dict(
            email="test@example.com",
            token_hash="a" * 64,
            created_at=now,
            expires_at=now + timedelta(minutes=30),
            ip_hash="b" * 64,
        )
        fields.update(overrides)
        return ResetRequest(**fields)

    def test_valid_when_unused_and_unexpired(self):
        assert self._request().is_valid_at(_now()) is True

    def test_invalid_once_used(self):
        assert self._request(used_at=_now()).is_valid_at(_now()) is False

    def test_invalid_after_expiry(self):
        request = self._request()
        assert request.is_valid_at(request.expires_at + timedelta(seconds=1)) is False

    def test_rejects_missing_token_hash(self):
        with pytest.raises(ValidationError):
            ResetRequest(
                email="test@example.com",
                created_at=_now(),
                expires_at=_now(),
                ip_hash="x",
            )
