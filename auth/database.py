"""Account storage.

One row per account in `accounts`; OAuth links live in the `oauth_links`
JSONB array and are read and written as a whole. Two concurrent link
mutations on the same account are last-write-wins.

The unique index on lower(email) is the backstop for the provisioning race:
its violation is raised as DuplicateEmailError. A clash on the generated
username raises UsernameTakenError so the caller can pick another suffix.
"""

import logging
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from auth.exceptions import DuplicateEmailError, UsernameTakenError
from auth.types import Account, NewAccount, OAuthLink
from clients.postgres_client import PostgresClient, UniqueViolation
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

USERNAME_CONSTRAINT = "accounts_username_key"

_COLUMNS = """id, email, username, display_name, password_hash, token_version,
              roles, disabled, avatar_url, oauth_links, created_at, updated_at,
              password_updated_at"""

# Columns a patch may touch. id and created_at are immutable.
_PATCHABLE = frozenset({
    "email",
    "username",
    "display_name",
    "password_hash",
    "token_version",
    "roles",
    "disabled",
    "avatar_url",
    "oauth_links",
    "updated_at",
    "password_updated_at",
})

_JSON_COLUMNS = frozenset({"roles", "oauth_links"})


def _links_json(links: list[OAuthLink]) -> Json:
    return Json([link.model_dump(mode="json") for link in links])


def _to_account(row: dict[str, Any] | None) -> Account | None:
    if row is None:
        return None
    return Account.model_validate(row)


class AccountRepository:
    """Account lookups and writes against PostgreSQL."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def find_by_oauth_link(self, provider: str, provider_id: str) -> Account | None:
        """Find the account holding a link for (provider, provider_id)."""
        row = self._db.execute_single(
            f"""SELECT {_COLUMNS} FROM accounts
                WHERE oauth_links @> %s::jsonb
                LIMIT 1""",
            (Json([{"provider": provider, "provider_id": provider_id}]),),
        )
        return _to_account(row)

    def find_by_email(self, email: str) -> Account | None:
        """Find account by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_COLUMNS} FROM accounts WHERE lower(email) = lower(%s)",
            (email.strip(),),
        )
        return _to_account(row)

    def find_by_id(self, account_id: UUID) -> Account | None:
        row = self._db.execute_single(
            f"SELECT {_COLUMNS} FROM accounts WHERE id = %s",
            (account_id,),
        )
        return _to_account(row)

    def create(self, fields: NewAccount) -> Account:
        """Insert a new account.

        Raises:
            DuplicateEmailError: The email is already taken.
            UsernameTakenError: The generated username is already taken.
        """
        try:
            rows = self._db.execute(
                f"""INSERT INTO accounts
                       (email, username, display_name, password_hash, token_version,
                        roles, disabled, avatar_url, oauth_links, created_at, updated_at)
                    VALUES (lower(%s), %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_COLUMNS}""",
                (
                    fields.email,
                    fields.username,
                    fields.display_name,
                    fields.password_hash,
                    fields.token_version,
                    Json(fields.roles),
                    fields.disabled,
                    fields.avatar_url,
                    _links_json(fields.oauth_links),
                    fields.created_at,
                    fields.updated_at,
                ),
            )
        except UniqueViolation as e:
            constraint = e.diag.constraint_name
            logger.warning(f"Account insert rejected by unique index {constraint}: {e}")
            if constraint == USERNAME_CONSTRAINT:
                raise UsernameTakenError(f"Username {fields.username!r} is taken")
            raise DuplicateEmailError("An account with that email already exists")
        return _to_account(rows[0])

    def save(self, account: Account) -> Account:
        """Persist every mutable field of an already-loaded account."""
        account.updated_at = now_utc()
        saved = self.update(
            account.id,
            account.model_dump(include=_PATCHABLE - {"email"}),
        )
        return saved or account

    def update(
        self,
        account_id: UUID,
        patch: dict[str, Any],
        increment_token_version: bool = False,
    ) -> Account | None:
        """Apply a partial update. Returns the updated account, None if missing.

        increment_token_version bumps the counter in the same statement, so
        concurrent bumps never collapse into one.

        Raises:
            ValueError: If the patch names a column that may not be changed.
        """
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Cannot patch account fields: {', '.join(sorted(unknown))}")

        assignments = []
        params: list[Any] = []
        for column, value in patch.items():
            if column == "oauth_links":
                value = Json([
                    link.model_dump(mode="json") if isinstance(link, OAuthLink)
                    else OAuthLink.model_validate(link).model_dump(mode="json")
                    for link in value
                ])
            elif column in _JSON_COLUMNS:
                value = Json(value)
            assignments.append(f"{column} = %s")
            params.append(value)

        if "updated_at" not in patch:
            assignments.append("updated_at = %s")
            params.append(now_utc())
        if increment_token_version:
            assignments.append("token_version = token_version + 1")

        params.append(account_id)
        row = self._db.execute_single(
            f"""UPDATE accounts SET {", ".join(assignments)}
                WHERE id = %s
                RETURNING {_COLUMNS}""",
            tuple(params),
        )
        return _to_account(row)
