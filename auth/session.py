"""Session issuance and validation.

Sessions are stored in Valkey with TTL matching session expiry. The token is
cryptographically random (secrets.token_urlsafe). Each session records the
account's token_version at issuance; once the stored token_version moves on
(password reset), every older session is rejected.
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AccountRepository
from auth.exceptions import SessionExpiredError, SessionRevokedError
from auth.types import Account, AccountView, AuthenticatedUser, Session
from clients.valkey_client import ValkeyClient
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Issues session credentials and validates them against the account."""

    KEY_PREFIX = "session:"

    def __init__(self, valkey: ValkeyClient, accounts: AccountRepository, config: AuthConfig):
        self._valkey = valkey
        self._accounts = accounts
        self._config = config

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def _store(self, session: Session) -> None:
        self._valkey.set_json(
            self._key(session.token),
            {
                "account_id": str(session.account_id),
                "token_version": session.token_version,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
                "last_activity_at": session.last_activity_at.isoformat(),
            },
            expire_seconds=self._config.session_expiry_hours * 3600,
        )

    def issue(self, account: Account) -> AuthenticatedUser:
        """Create a session for the account and return it with a sanitized view."""
        now = now_utc()
        session = Session(
            token=secrets.token_urlsafe(32),
            account_id=account.id,
            token_version=account.token_version,
            created_at=now,
            expires_at=now + timedelta(hours=self._config.session_expiry_hours),
            last_activity_at=now,
        )
        self._store(session)
        return AuthenticatedUser(session=session, user=AccountView.from_account(account))

    def validate_session(self, token: str) -> Session:
        """Validate session token and return the (extended) session.

        Raises:
            SessionExpiredError: Token unknown or past expiry.
            SessionRevokedError: Account gone, disabled, or token_version advanced.
        """
        data = self._valkey.get_json(self._key(token))

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            account_id=UUID(data["account_id"]),
            token_version=data["token_version"],
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
            last_activity_at=parse_iso(data["last_activity_at"]),
        )

        if now_utc() > session.expires_at:
            self._valkey.delete(self._key(token))
            raise SessionExpiredError("Session expired")

        account = self._accounts.find_by_id(session.account_id)
        if account is None or account.disabled:
            self._valkey.delete(self._key(token))
            raise SessionRevokedError("Account is no longer active")

        if account.token_version != session.token_version:
            logger.warning(f"Token version mismatch for account {account.id}")
            self._valkey.delete(self._key(token))
            raise SessionRevokedError("Session predates a credential change")

        return self._extend_session(session)

    def _extend_session(self, session: Session) -> Session:
        """Sliding expiry: push expires_at out and record activity."""
        now = now_utc()
        updated = session.model_copy(update={
            "expires_at": now + timedelta(hours=self._config.session_expiry_hours),
            "last_activity_at": now,
        })
        self._store(updated)
        return updated

    def revoke_session(self, token: str) -> None:
        """Revoke session (logout). Safe to call with nonexistent token."""
        self._valkey.delete(self._key(token))
