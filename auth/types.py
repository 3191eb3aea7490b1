"""Pydantic models for the identity domain."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

OAuthProvider = Literal["google", "microsoft", "nextcloud"]


class OAuthProfile(BaseModel):
    """Provider identity normalized to one shape. Immutable."""

    provider: str
    provider_id: str
    email: str
    display_name: str
    avatar_url: str

    model_config = {"frozen": True}


class OAuthLink(BaseModel):
    """One external identity bound to an account (embedded in Account)."""

    provider: OAuthProvider
    provider_id: str
    email: str = ""
    display_name: str = ""
    avatar_url: str = ""
    linked_at: datetime
    last_used_at: datetime | None = None


class Account(BaseModel):
    """An authenticatable identity.

    Always holds at least one usable auth method: a non-empty password_hash
    or at least one OAuth link.
    """

    id: UUID
    email: str
    username: str
    display_name: str = ""
    password_hash: str = ""
    token_version: int = 1
    roles: list[str] = Field(default_factory=lambda: ["viewer"])
    disabled: bool = False
    avatar_url: str = ""
    oauth_links: list[OAuthLink] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    password_updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)


class NewAccount(BaseModel):
    """Fields for inserting an account; the store assigns the id."""

    email: str
    username: str
    display_name: str
    password_hash: str = ""
    token_version: int = 1
    roles: list[str]
    disabled: bool = False
    avatar_url: str = ""
    oauth_links: list[OAuthLink]
    created_at: datetime
    updated_at: datetime


class AccountView(BaseModel):
    """Sanitized account projection safe to return to clients."""

    id: UUID
    email: str
    username: str
    display_name: str
    roles: list[str]
    avatar_url: str = ""
    has_password: bool
    linked_providers: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            display_name=account.display_name,
            roles=account.roles,
            avatar_url=account.avatar_url,
            has_password=account.has_password,
            linked_providers=[link.provider for link in account.oauth_links],
        )


class Session(BaseModel):
    """An issued session credential."""

    token: str = Field(..., description="Session token (opaque string)")
    account_id: UUID
    token_version: int = Field(..., description="Account token_version at issuance")
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class AuthenticatedUser(BaseModel):
    """Credential plus sanitized account returned after a successful login."""

    session: Session
    user: AccountView

    @property
    def access_token(self) -> str:
        return self.session.token


class LinkedProvider(BaseModel):
    """Listing entry for a linked OAuth provider."""

    provider: str
    email: str = ""
    linked_at: datetime
    last_used_at: datetime | None = None


class ProviderAvailability(BaseModel):
    """Whether the login UI may offer a provider."""

    provider: OAuthProvider
    enabled: bool
    reason: str | None = None


class ResetRequest(BaseModel):
    """A single-use, hashed, time-boxed password reset ticket."""

    id: UUID | None = None
    email: str
    token_hash: str = Field(..., description="SHA-256 hex of the raw token")
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None
    ip_hash: str
    user_agent: str | None = None

    def is_valid_at(self, now: datetime) -> bool:
        return self.used_at is None and now <= self.expires_at


class ForgotPasswordRequest(BaseModel):
    """Request payload for a password reset link.

    Plain str on purpose: malformed addresses get the same generic answer.
    """

    email: str = ""


class ForgotResult(BaseModel):
    ok: bool = True
    dev_token: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str = ""
    password: str = ""
    confirm: str = ""


class TokenValidation(BaseModel):
    ok: bool
    email: str | None = None


class DeliveryResult(BaseModel):
    dev_token: str | None = None
