"""Security event logging for the identity audit trail.

Append-only log to the security_events table. Every OAuth login outcome and
every password reset request/completion lands here. Old events are rotated
out to a JSON lines archive.
"""

import json
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class SecurityEvent(Enum):
    """Identity security event types."""

    OAUTH_LOGIN_SUCCEEDED = "auth.oauth.login_succeeded"
    OAUTH_LOGIN_FAILED = "auth.oauth.login_failed"
    OAUTH_LINKED = "auth.oauth.linked"
    OAUTH_UNLINKED = "auth.oauth.unlinked"
    ACCOUNT_PROVISIONED = "auth.oauth.account_provisioned"
    PASSWORD_RESET_REQUESTED = "auth.password_reset.requested"
    PASSWORD_RESET_COMPLETED = "auth.password_reset.completed"
    PASSWORD_RESET_FAILED = "auth.password_reset.failed"
    RATE_LIMITED = "auth.rate_limited"


_COLUMNS = "id, event_type, email, account_id, ip_address, user_agent, details, created_at"


def _archive_record(row: dict) -> dict:
    """JSON-safe copy of an event row; UUID and INET columns become strings."""
    record = dict(row)
    for key in ("id", "account_id", "ip_address"):
        if record[key] is not None:
            record[key] = str(record[key])
    record["created_at"] = row["created_at"].isoformat()
    return record


class SecurityLogger:
    """Append-only security event logger with rotation."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        account_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_rowcount(
            """INSERT INTO security_events
               (event_type, email, account_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)""",
            (
                event.value,
                email,
                str(account_id) if account_id else None,
                ip_address or None,
                user_agent or None,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    def get_recent_events(
        self,
        email: str | None = None,
        account_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest events first, narrowed by whichever filters are given."""
        filters = {
            "email": email,
            "account_id": str(account_id) if account_id else None,
            "event_type": event_type.value if event_type else None,
        }
        active = {column: value for column, value in filters.items() if value}
        where_clause = " AND ".join(f"{column} = %s" for column in active) or "TRUE"

        return self._db.execute(
            f"""SELECT {_COLUMNS}
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            (*active.values(), limit),
        )

    def rotate_logs(self, older_than_days: int, output_path: Path) -> int:
        """Archive old events to a JSON lines file and delete them.

        Returns:
            Number of events archived and deleted
        """
        cutoff = now_utc() - timedelta(days=older_than_days)
        events = self._db.execute(
            f"SELECT {_COLUMNS} FROM security_events WHERE created_at < %s ORDER BY created_at ASC",
            (cutoff,),
        )
        if not events:
            return 0

        with open(output_path, "a") as f:
            f.writelines(json.dumps(_archive_record(event)) + "\n" for event in events)

        # Delete only what was archived; newer rows may have arrived meanwhile
        self._db.execute_rowcount(
            "DELETE FROM security_events WHERE id = ANY(%s::uuid[])",
            ([str(event["id"]) for event in events],),
        )
        return len(events)
