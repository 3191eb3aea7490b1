"""OAuth identity resolution - find-or-create-and-login plus link management.

Resolution order for a normalized profile (first match wins):

1. An account already holding a link for (provider, provider_id): refresh
   the link snapshot and log in.
2. An account with the profile's email: link the provider to it and log in,
   unless the account is disabled.
3. Otherwise provision a new lowest-privilege account seeded with the link.

The three steps are separate round-trips, not one transaction. A concurrent
request provisioning the same email is caught by the pre-insert recheck or,
failing that, by the unique email index; both surface as DuplicateEmailError.

The email fallback trusts the provider-supplied address as-is.
"""

import logging
import secrets
from typing import Callable
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AccountRepository
from auth.exceptions import (
    AccountDisabledError,
    DuplicateEmailError,
    InvalidAccountError,
    LastAuthMethodError,
    MissingEmailError,
    MissingProviderIdError,
    UnsupportedProviderError,
    UsernameTakenError,
)
from auth.oauth_config import PROVIDER_CONFIGS, OAuthProviderConfig
from auth.profile import SUPPORTED_OAUTH_PROVIDERS, is_supported_provider
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from auth.types import (
    Account,
    AuthenticatedUser,
    LinkedProvider,
    NewAccount,
    OAuthLink,
    OAuthProfile,
    ProviderAvailability,
)
from utils.timezone import epoch_base36, now_utc

logger = logging.getLogger(__name__)

# Fresh username suffixes tried before a clash is surfaced
_USERNAME_ATTEMPTS = 3

_PROVIDER_LABELS = {
    "google": "Google",
    "microsoft": "Microsoft",
    "nextcloud": "Nextcloud",
}


def parse_account_id(value: UUID | str | None) -> UUID | None:
    """UUID for a well-formed id, None for anything else."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _refreshed(link: OAuthLink, profile: OAuthProfile, now) -> OAuthLink:
    # Empty profile values keep the last known snapshot
    return link.model_copy(update={
        "last_used_at": now,
        "email": profile.email or link.email,
        "display_name": profile.display_name or link.display_name,
        "avatar_url": profile.avatar_url or link.avatar_url,
    })


def _matches(link: OAuthLink, profile: OAuthProfile) -> bool:
    return link.provider == profile.provider and link.provider_id == profile.provider_id


class OAuthService:
    """Orchestrates OAuth login, account linking and provider availability.

    Session issuance is delegated to SessionManager so OAuth and any other
    login path hand back the same AuthenticatedUser shape.
    """

    def __init__(
        self,
        config: AuthConfig,
        accounts: AccountRepository,
        session_manager: SessionManager,
        security_logger: SecurityLogger,
        provider_configs: dict[str, Callable[[], OAuthProviderConfig]] | None = None,
    ):
        self._config = config
        self._accounts = accounts
        self._session_manager = session_manager
        self._security_logger = security_logger
        self._provider_configs = provider_configs or PROVIDER_CONFIGS

    # Public API

    def get_provider_availability(self) -> list[ProviderAvailability]:
        """Which providers the login UI may offer. Reads configuration on every call."""
        result = []
        for provider in SUPPORTED_OAUTH_PROVIDERS:
            cfg = self._provider_configs[provider]()
            enabled = cfg.is_configured
            result.append(ProviderAvailability(
                provider=provider,
                enabled=enabled,
                reason=None if enabled else f"{_PROVIDER_LABELS[provider]} SSO is currently unavailable",
            ))
        return result

    def find_or_create_and_login(
        self,
        profile: OAuthProfile,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthenticatedUser:
        """Resolve the profile to an account and issue a session.

        Raises:
            UnsupportedProviderError: Profile provider is not supported.
            MissingProviderIdError: Profile has no provider_id.
            AccountDisabledError: Email matched a disabled account.
            MissingEmailError: Nothing matched and the profile has no email.
            DuplicateEmailError: A concurrent request created the email first.
        """
        audit = {"ip_address": ip_address, "user_agent": user_agent}

        if not is_supported_provider(profile.provider):
            self._log_failure(profile, "unsupported_provider", **audit)
            raise UnsupportedProviderError(f"Unsupported OAuth provider: {profile.provider!r}")

        if not profile.provider_id.strip():
            self._log_failure(profile, "missing_provider_id", **audit)
            raise MissingProviderIdError("OAuth provider returned no account id")

        now = now_utc()

        # 1 - existing link
        account = self._accounts.find_by_oauth_link(profile.provider, profile.provider_id)
        if account is not None:
            account = self._touch_link(account, profile, now)
            return self._login(account, profile, "existing_link", **audit)

        # 2 - email fallback
        email = profile.email.strip().lower()
        if email:
            account = self._accounts.find_by_email(email)
            if account is not None:
                if account.disabled:
                    self._log_failure(profile, "account_disabled", account_id=account.id, **audit)
                    raise AccountDisabledError("Account is disabled")
                account = self._add_link(account, profile, now, **audit)
                return self._login(account, profile, "email_match", **audit)

        # 3 - auto-provision
        account = self._provision(profile, email, now, **audit)
        return self._login(account, profile, "provisioned", **audit)

    def get_linked_providers(self, account_id: UUID | str) -> list[LinkedProvider]:
        """Linked providers for an account; empty for a malformed id or missing account."""
        oid = parse_account_id(account_id)
        if oid is None:
            return []
        account = self._accounts.find_by_id(oid)
        if account is None:
            return []
        return [
            LinkedProvider(
                provider=link.provider,
                email=link.email,
                linked_at=link.linked_at,
                last_used_at=link.last_used_at,
            )
            for link in account.oauth_links
        ]

    def unlink_provider(
        self,
        account_id: UUID | str,
        provider: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        """Remove a provider link, never the account's last auth method.

        Idempotent: unlinking a provider that is not linked succeeds without a write.

        Raises:
            InvalidAccountError: Malformed id or missing account.
            LastAuthMethodError: Account has no password and this is its only link.
        """
        oid = parse_account_id(account_id)
        if oid is None:
            raise InvalidAccountError("Invalid account")

        account = self._accounts.find_by_id(oid)
        if account is None:
            raise InvalidAccountError("Account not found")

        links = list(account.oauth_links)
        idx = next((i for i, link in enumerate(links) if link.provider == provider), None)
        if idx is None:
            return {"ok": True}

        if not account.has_password and len(links) <= 1:
            raise LastAuthMethodError(
                "Cannot unlink the only authentication method. Set a password first."
            )

        removed = links.pop(idx)
        self._accounts.update(account.id, {"oauth_links": links})

        self._security_logger.log(
            SecurityEvent.OAUTH_UNLINKED,
            email=account.email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"provider": removed.provider},
        )
        return {"ok": True}

    # Internals

    def _login(
        self,
        account: Account,
        profile: OAuthProfile,
        path: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuthenticatedUser:
        result = self._session_manager.issue(account)
        self._security_logger.log(
            SecurityEvent.OAUTH_LOGIN_SUCCEEDED,
            email=account.email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"provider": profile.provider, "path": path},
        )
        return result

    def _log_failure(
        self,
        profile: OAuthProfile,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
        account_id: UUID | None = None,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.OAUTH_LOGIN_FAILED,
            email=profile.email or None,
            account_id=account_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"provider": profile.provider, "reason": reason},
        )

    def _touch_link(self, account: Account, profile: OAuthProfile, now) -> Account:
        links = [
            _refreshed(link, profile, now) if _matches(link, profile) else link
            for link in account.oauth_links
        ]
        updated = self._accounts.update(account.id, {"oauth_links": links, "updated_at": now})
        return updated or account.model_copy(update={"oauth_links": links})

    def _add_link(
        self,
        account: Account,
        profile: OAuthProfile,
        now,
        ip_address: str | None,
        user_agent: str | None,
    ) -> Account:
        links = list(account.oauth_links)
        existing = next((i for i, link in enumerate(links) if _matches(link, profile)), None)
        if existing is not None:
            links[existing] = _refreshed(links[existing], profile, now)
        else:
            links.append(OAuthLink(
                provider=profile.provider,
                provider_id=profile.provider_id,
                email=profile.email,
                display_name=profile.display_name,
                avatar_url=profile.avatar_url,
                linked_at=now,
                last_used_at=now,
            ))

        updated = self._accounts.update(account.id, {"oauth_links": links, "updated_at": now})

        if existing is None:
            self._security_logger.log(
                SecurityEvent.OAUTH_LINKED,
                email=account.email,
                account_id=account.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"provider": profile.provider},
            )
        return updated or account.model_copy(update={"oauth_links": links})

    def _provision(
        self,
        profile: OAuthProfile,
        email: str,
        now,
        ip_address: str | None,
        user_agent: str | None,
    ) -> Account:
        if not email:
            self._log_failure(profile, "missing_email", ip_address, user_agent)
            raise MissingEmailError("OAuth provider did not return an email address")

        # Race guard: another request may have created the account since step 2
        if self._accounts.find_by_email(email) is not None:
            self._log_failure(profile, "duplicate_email", ip_address, user_agent)
            raise DuplicateEmailError("An account with that email already exists")

        local_part = email.split("@")[0]
        fields = NewAccount(
            email=email,
            username=f"{local_part}_{epoch_base36(now)}",
            display_name=profile.display_name or local_part,
            password_hash="",
            token_version=1,
            roles=[self._config.default_role],
            disabled=False,
            avatar_url=profile.avatar_url,
            oauth_links=[OAuthLink(
                provider=profile.provider,
                provider_id=profile.provider_id,
                email=profile.email,
                display_name=profile.display_name,
                avatar_url=profile.avatar_url,
                linked_at=now,
                last_used_at=now,
            )],
            created_at=now,
            updated_at=now,
        )

        for attempt in range(_USERNAME_ATTEMPTS):
            try:
                account = self._accounts.create(fields)
                break
            except DuplicateEmailError:
                self._log_failure(profile, "duplicate_email", ip_address, user_agent)
                raise
            except UsernameTakenError:
                if attempt == _USERNAME_ATTEMPTS - 1:
                    self._log_failure(profile, "username_taken", ip_address, user_agent)
                    raise
                username = f"{local_part}_{epoch_base36(now)}{secrets.token_hex(2)}"
                logger.info(f"Username clash for {email}, retrying as {username}")
                fields = fields.model_copy(update={"username": username})

        logger.info(f"Provisioned OAuth account {email} via {profile.provider}")
        self._security_logger.log(
            SecurityEvent.ACCOUNT_PROVISIONED,
            email=email,
            account_id=account.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"provider": profile.provider, "role": self._config.default_role},
        )
        return account
