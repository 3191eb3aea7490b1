"""Password reset request storage (`password_reset_requests` table).

Only the SHA-256 hash of a reset token is ever stored.
"""

from datetime import datetime
from uuid import UUID

from auth.types import ResetRequest
from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

_COLUMNS = "id, email, token_hash, created_at, expires_at, used_at, ip_hash, user_agent"


class RecoveryTokenStore:
    """Database operations for password reset requests."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def insert(self, request: ResetRequest) -> ResetRequest:
        rows = self._db.execute(
            f"""INSERT INTO password_reset_requests
                   (email, token_hash, created_at, expires_at, ip_hash, user_agent)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {_COLUMNS}""",
            (
                request.email,
                request.token_hash,
                request.created_at,
                request.expires_at,
                request.ip_hash,
                request.user_agent,
            ),
        )
        return ResetRequest.model_validate(rows[0])

    def find_by_token_hash(self, token_hash: str) -> ResetRequest | None:
        row = self._db.execute_single(
            f"SELECT {_COLUMNS} FROM password_reset_requests WHERE token_hash = %s",
            (token_hash,),
        )
        if row is None:
            return None
        return ResetRequest.model_validate(row)

    def mark_used(self, request_id: UUID, at: datetime) -> bool:
        """Set used_at once. Returns False if the request was already used."""
        count = self._db.execute_rowcount(
            """UPDATE password_reset_requests SET used_at = %s
               WHERE id = %s AND used_at IS NULL""",
            (at, request_id),
        )
        return count > 0

    def count_by_email_since(self, email: str, since: datetime) -> int:
        return self._db.execute_scalar(
            """SELECT count(*) FROM password_reset_requests
               WHERE email = %s AND created_at >= %s""",
            (email, since),
        ) or 0

    def count_by_ip_hash_since(self, ip_hash: str, since: datetime) -> int:
        return self._db.execute_scalar(
            """SELECT count(*) FROM password_reset_requests
               WHERE ip_hash = %s AND created_at >= %s""",
            (ip_hash, since),
        ) or 0

    def delete_expired_unused(self) -> int:
        """Delete requests past expiry that were never used. Returns count deleted."""
        return self._db.execute_rowcount(
            """DELETE FROM password_reset_requests
               WHERE used_at IS NULL AND expires_at < %s""",
            (now_utc(),),
        )

    def delete_used_older_than(self, cutoff: datetime) -> int:
        """Delete used requests created before cutoff. Returns count deleted."""
        return self._db.execute_rowcount(
            """DELETE FROM password_reset_requests
               WHERE used_at IS NOT NULL AND created_at < %s""",
            (cutoff,),
        )
