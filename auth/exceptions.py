"""Typed exceptions for identity and recovery failures.

Three families, each mapped to one HTTP status by api/errors.py:
UnauthorizedError (never retried by the caller), ConflictError (surfaced so
the user can pick another path) and ThrottledError (wait and retry).
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


# Unauthorized


class UnauthorizedError(AuthError):
    """Caller is not allowed to proceed with this identity."""


class AccountDisabledError(UnauthorizedError):
    """Account exists but is disabled. Login not permitted."""


class InvalidAccountError(UnauthorizedError):
    """Account id is malformed or no longer refers to an account."""


class UnsupportedProviderError(UnauthorizedError):
    """Profile names a provider outside the supported set."""


class MissingProviderIdError(UnauthorizedError):
    """Provider response carried no subject id, so no link can identify it."""


class MissingEmailError(UnauthorizedError):
    """
    OAuth provider returned no email, so the account cannot be provisioned.

    Only raised when neither a linked account nor an email match exists.
    """


class SessionExpiredError(UnauthorizedError):
    """Session has expired and user must re-authenticate."""


class SessionRevokedError(UnauthorizedError):
    """
    Session was revoked: logout, disabled account, or the account's
    token_version moved past the one embedded in the session.
    """


class RecoveryValidationError(UnauthorizedError):
    """Password reset input was rejected. User-facing, not retried as-is."""


class InvalidTokenError(RecoveryValidationError):
    """Reset token is empty, unknown, or points at a vanished account."""


class ExpiredTokenError(RecoveryValidationError):
    """Reset token was already used or is past its expiry."""


class WeakPasswordError(RecoveryValidationError):
    """New password does not satisfy the password policy."""


class PasswordMismatchError(RecoveryValidationError):
    """Password and confirmation differ."""


# Conflict


class ConflictError(AuthError):
    """Request collides with existing state."""


class DuplicateEmailError(ConflictError):
    """
    An account with this email appeared between lookup and insert.

    The user should log in through the existing account and link from there.
    """


class UsernameTakenError(ConflictError):
    """Generated username collided with an existing one."""


class LastAuthMethodError(ConflictError):
    """Unlinking would leave the account with no password and no OAuth link."""


# Throttled


class ThrottledError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Too many requests. Retry after {retry_after_seconds} seconds.")
