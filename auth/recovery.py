"""Password recovery - rate-limited reset requests and single-use tokens.

forgot() answers the same way whether or not the email belongs to an
account, so it cannot be used to enumerate accounts. Only the SHA-256 of a
reset token is stored; the raw token leaves the service through the delivery
port, or inline outside production when an account matched.

A successful reset bumps the account's token_version, which invalidates
every session issued before the reset.
"""

import logging
import re
import secrets
from datetime import timedelta
from typing import Protocol

from auth.config import AuthConfig
from auth.database import AccountRepository
from auth.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    PasswordMismatchError,
    ThrottledError,
    WeakPasswordError,
)
from auth.passwords import hash_password, password_meets_policy, sha256_hex
from auth.recovery_store import RecoveryTokenStore
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import DeliveryResult, ForgotResult, ResetRequest, TokenValidation
from utils.timezone import minutes_ago, now_utc

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ResetDelivery(Protocol):
    def deliver(self, email: str, token: str) -> DeliveryResult: ...


def normalize_email(value: object) -> str:
    """Lowercased, trimmed email, or "" when it is not syntactically an email."""
    email = value.strip().lower() if isinstance(value, str) else ""
    return email if email and _EMAIL_RE.match(email) else ""


class PasswordRecoveryService:
    """Issues, validates and consumes password reset tokens."""

    def __init__(
        self,
        config: AuthConfig,
        accounts: AccountRepository,
        store: RecoveryTokenStore,
        delivery: ResetDelivery,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._accounts = accounts
        self._store = store
        self._delivery = delivery
        self._security_logger = security_logger

    def forgot(
        self,
        email: str,
        requester_ip: str | None,
        user_agent: str | None,
    ) -> ForgotResult:
        """Start a password reset.

        Flow:
        1. Cleanup sweep (best-effort)
        2. Invalid email -> generic ok, nothing stored
        3. Per-email and per-IP rate limits over the trailing window
        4. Account lookup (absent is fine)
        5. Store hashed token, audit the request
        6. Deliver when an account matched; dev token only outside production

        Raises:
            ThrottledError: If either rate limit is reached.
            EmailGatewayError: If delivery fails.
        """
        self._cleanup()

        email = normalize_email(email)
        if not email:
            return ForgotResult(ok=True)

        now = now_utc()
        ip_hash = sha256_hex(requester_ip or "")
        since = minutes_ago(self._config.reset_rate_window_minutes, now)

        by_email = self._count_recent_by_email(email, since)
        by_ip = self._count_recent_by_ip(ip_hash, since)

        if by_email >= self._config.reset_max_per_email or by_ip >= self._config.reset_max_per_ip:
            logger.warning(f"Reset rate limit exceeded for email: {email}")
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                email=email,
                ip_address=requester_ip,
                user_agent=user_agent,
                details={"flow": "password_reset", "by_email": by_email, "by_ip": by_ip},
            )
            raise ThrottledError(retry_after_seconds=self._config.reset_rate_window_minutes * 60)

        account = self._accounts.find_by_email(email)

        token = secrets.token_urlsafe(32)
        self._store.insert(ResetRequest(
            email=email,
            token_hash=sha256_hex(token),
            created_at=now,
            expires_at=now + timedelta(minutes=self._config.reset_token_ttl_minutes),
            ip_hash=ip_hash,
            user_agent=user_agent or None,
        ))

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_REQUESTED,
            email=email,
            account_id=account.id if account else None,
            ip_address=requester_ip,
            user_agent=user_agent,
            details={"env": self._config.environment, "account_found": account is not None},
        )

        if account is None:
            return ForgotResult(ok=True)

        delivered = self._delivery.deliver(email=email, token=token)

        if self._config.is_production:
            return ForgotResult(ok=True)
        return ForgotResult(ok=True, dev_token=delivered.dev_token)

    def validate(self, token: str) -> TokenValidation:
        """Check a reset token without consuming it. Never writes."""
        raw = (token or "").strip()
        if not raw:
            return TokenValidation(ok=False)

        try:
            request = self._store.find_by_token_hash(sha256_hex(raw))
        except Exception as e:
            logger.error(f"Error validating reset token: {e}")
            return TokenValidation(ok=False)

        if request is None or not request.is_valid_at(now_utc()):
            return TokenValidation(ok=False)
        return TokenValidation(ok=True, email=request.email)

    def reset(self, token: str, password: str, confirm: str) -> dict:
        """Consume a reset token and set a new password.

        Raises:
            InvalidTokenError: Empty or unknown token, or the account vanished.
            WeakPasswordError: Password fails the policy.
            PasswordMismatchError: Confirmation differs.
            ExpiredTokenError: Token already used or expired.
        """
        self._cleanup()

        raw = (token or "").strip()
        password = password or ""
        confirm = confirm or ""

        if not raw:
            raise InvalidTokenError("Invalid token")
        if not password_meets_policy(password, self._config.password_min_length):
            raise WeakPasswordError("Weak password")
        if password != confirm:
            raise PasswordMismatchError("Password mismatch")

        request = self._store.find_by_token_hash(sha256_hex(raw))
        if request is None:
            raise InvalidTokenError("Invalid token")

        now = now_utc()
        if not request.is_valid_at(now):
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                email=request.email,
                details={"reason": "used" if request.used_at else "expired"},
            )
            raise ExpiredTokenError("Expired token")

        account = self._accounts.find_by_email(request.email)
        if account is None:
            raise InvalidTokenError("Invalid token")

        # Claim the token first so two concurrent resets cannot both succeed
        if not self._store.mark_used(request.id, now):
            raise ExpiredTokenError("Expired token")

        updated = self._accounts.update(
            account.id,
            {"password_hash": hash_password(password), "password_updated_at": now},
            increment_token_version=True,
        )
        if updated is None:
            self._security_logger.log(
                SecurityEvent.PASSWORD_RESET_FAILED,
                email=request.email,
                account_id=account.id,
                details={"reason": "account_removed"},
            )
            raise InvalidTokenError("Invalid token")

        self._security_logger.log(
            SecurityEvent.PASSWORD_RESET_COMPLETED,
            email=account.email,
            account_id=account.id,
            details={"token_used": True},
        )
        logger.info(f"Password reset completed for account {account.id}")
        return {"ok": True}

    def _cleanup(self) -> None:
        """Delete expired-unused and old used requests. Failures are logged, not raised."""
        try:
            self._store.delete_expired_unused()
            self._store.delete_used_older_than(
                now_utc() - timedelta(days=self._config.reset_used_retention_days)
            )
        except Exception as e:
            logger.error(f"Error during reset request cleanup: {e}")

    def _count_recent_by_email(self, email: str, since) -> int:
        try:
            return self._store.count_by_email_since(email, since)
        except Exception as e:
            logger.error(f"Error counting recent reset requests by email: {e}")
            return 0

    def _count_recent_by_ip(self, ip_hash: str, since) -> int:
        try:
            return self._store.count_by_ip_hash_since(ip_hash, since)
        except Exception as e:
            logger.error(f"Error counting recent reset requests by IP: {e}")
            return 0
