"""Shared test fixtures for the identity test suite.

Storage ports are replaced by in-memory fakes that honour the same method
contracts as AccountRepository, RecoveryTokenStore and ValkeyClient, so
service tests exercise real orchestration logic without PostgreSQL/Valkey.
"""

from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

import clients.vault_client as vault_module
vault_module.reset_vault_cache()

from auth.config import AuthConfig
from auth.exceptions import DuplicateEmailError, UsernameTakenError
from auth.security_logger import SecurityLogger
from auth.session import SessionManager
from auth.types import Account, NewAccount, OAuthLink, ResetRequest
from utils.timezone import now_utc


# =============================================================================
# TEST ACCOUNT CONSTANTS
# =============================================================================

TEST_ACCOUNT_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_ACCOUNT_EMAIL = "testuser@test.local"


# =============================================================================
# IN-MEMORY PORTS
# =============================================================================


class InMemoryAccountRepository:
    """Dict-backed stand-in for AccountRepository."""

    def __init__(self):
        self.accounts: dict[UUID, Account] = {}
        self.writes = 0

    def add(self, account: Account) -> Account:
        self.accounts[account.id] = account.model_copy(deep=True)
        return account

    def find_by_oauth_link(self, provider, provider_id):
        for account in self.accounts.values():
            if any(l.provider == provider and l.provider_id == provider_id for l in account.oauth_links):
                return account.model_copy(deep=True)
        return None

    def find_by_email(self, email):
        for account in self.accounts.values():
            if account.email.lower() == email.strip().lower():
                return account.model_copy(deep=True)
        return None

    def find_by_id(self, account_id):
        account = self.accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    def create(self, fields: NewAccount) -> Account:
        if self.find_by_email(fields.email) is not None:
            raise DuplicateEmailError("An account with that email already exists")
        if any(a.username == fields.username for a in self.accounts.values()):
            raise UsernameTakenError(f"Username {fields.username!r} is taken")
        self.writes += 1
        account = Account(id=uuid4(), **fields.model_dump())
        account.email = account.email.lower()
        self.accounts[account.id] = account
        return account.model_copy(deep=True)

    def save(self, account: Account) -> Account:
        self.writes += 1
        self.accounts[account.id] = account.model_copy(deep=True)
        return account

    def update(self, account_id, patch, increment_token_version=False):
        current = self.accounts.get(account_id)
        if current is None:
            return None
        self.writes += 1
        data = current.model_dump()
        data.update(patch)
        if increment_token_version:
            data["token_version"] = current.token_version + 1
        data["updated_at"] = patch.get("updated_at", now_utc())
        updated = Account.model_validate(data)
        self.accounts[account_id] = updated
        return updated.model_copy(deep=True)


class InMemoryRecoveryTokenStore:
    """List-backed stand-in for RecoveryTokenStore."""

    def __init__(self):
        self.requests: list[ResetRequest] = []

    def insert(self, request: ResetRequest) -> ResetRequest:
        stored = request.model_copy(update={"id": uuid4()})
        self.requests.append(stored)
        return stored

    def find_by_token_hash(self, token_hash):
        for request in self.requests:
            if request.token_hash == token_hash:
                return request.model_copy()
        return None

    def mark_used(self, request_id, at):
        for i, request in enumerate(self.requests):
            if request.id == request_id and request.used_at is None:
                self.requests[i] = request.model_copy(update={"used_at": at})
                return True
        return False

    def count_by_email_since(self, email, since):
        return sum(1 for r in self.requests if r.email == email and r.created_at >= since)

    def count_by_ip_hash_since(self, ip_hash, since):
        return sum(1 for r in self.requests if r.ip_hash == ip_hash and r.created_at >= since)

    def delete_expired_unused(self):
        now = now_utc()
        before = len(self.requests)
        self.requests = [r for r in self.requests if not (r.used_at is None and r.expires_at < now)]
        return before - len(self.requests)

    def delete_used_older_than(self, cutoff):
        before = len(self.requests)
        self.requests = [r for r in self.requests if not (r.used_at is not None and r.created_at < cutoff)]
        return before - len(self.requests)


class InMemoryValkey:
    """Dict-backed stand-in for ValkeyClient (JSON values, TTL recorded not enforced)."""

    def __init__(self):
        self.data: dict[str, dict | list] = {}
        self.ttls: dict[str, int | None] = {}

    def set_json(self, key, value, expire_seconds=None):
        self.data[key] = value
        self.ttls[key] = expire_seconds

    def get_json(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """Development config with the production defaults for limits and TTLs."""
    return AuthConfig(environment="development", app_base_url="https://crm.example.com")


@pytest.fixture
def accounts():
    return InMemoryAccountRepository()


@pytest.fixture
def reset_store():
    return InMemoryRecoveryTokenStore()


@pytest.fixture
def valkey():
    return InMemoryValkey()


@pytest.fixture
def security_logger():
    """Mock security logger - assertions inspect recorded events."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def session_manager(valkey, accounts, config):
    return SessionManager(valkey, accounts, config)


@pytest.fixture
def make_account(accounts):
    """Factory inserting an account into the in-memory repository."""

    def _make(
        email: str = TEST_ACCOUNT_EMAIL,
        password_hash: str = "",
        links: list[OAuthLink] | None = None,
        disabled: bool = False,
        token_version: int = 1,
        account_id: UUID | None = None,
    ) -> Account:
        now = now_utc()
        account = Account(
            id=account_id or uuid4(),
            email=email,
            username=email.split("@")[0],
            display_name=email.split("@")[0],
            password_hash=password_hash,
            token_version=token_version,
            roles=["viewer"],
            disabled=disabled,
            oauth_links=links or [],
            created_at=now,
            updated_at=now,
        )
        return accounts.add(account)

    return _make


@pytest.fixture
def make_link():
    def _make(provider: str = "google", provider_id: str = "g1", email: str = "") -> OAuthLink:
        now = now_utc()
        return OAuthLink(
            provider=provider,
            provider_id=provider_id,
            email=email,
            linked_at=now,
            last_used_at=now,
        )

    return _make
