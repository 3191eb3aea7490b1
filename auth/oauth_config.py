"""
OAuth provider configuration derived from environment variables.

Read at call time, never cached: toggling a provider's credentials takes
effect on the next availability check. Missing values fall back to empty
strings so the service boots without SSO configured; unconfigured providers
are simply reported as unavailable.
"""

import os

from pydantic import BaseModel


class OAuthProviderConfig(BaseModel):
    """Credentials and endpoints for one OAuth provider."""

    client_id: str = ""
    client_secret: str = ""
    callback_url: str = ""
    scope: list[str] = []

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class MicrosoftOAuthConfig(OAuthProviderConfig):
    tenant_id: str = "common"


class NextcloudOAuthConfig(OAuthProviderConfig):
    base_url: str = ""
    authorization_url: str = ""
    token_url: str = ""
    user_info_url: str = ""


def google_oauth_config() -> OAuthProviderConfig:
    return OAuthProviderConfig(
        client_id=os.getenv("OAUTH_GOOGLE_CLIENT_ID", ""),
        client_secret=os.getenv("OAUTH_GOOGLE_CLIENT_SECRET", ""),
        callback_url=os.getenv(
            "OAUTH_GOOGLE_CALLBACK_URL",
            "http://localhost:3000/auth/oauth/google/callback",
        ),
        scope=["email", "profile", "openid"],
    )


def microsoft_oauth_config() -> MicrosoftOAuthConfig:
    return MicrosoftOAuthConfig(
        client_id=os.getenv("OAUTH_MICROSOFT_CLIENT_ID", ""),
        client_secret=os.getenv("OAUTH_MICROSOFT_CLIENT_SECRET", ""),
        callback_url=os.getenv(
            "OAUTH_MICROSOFT_CALLBACK_URL",
            "http://localhost:3000/auth/oauth/microsoft/callback",
        ),
        tenant_id=os.getenv("OAUTH_MICROSOFT_TENANT_ID") or "common",
        scope=["openid", "profile", "email", "User.Read"],
    )


def nextcloud_oauth_config() -> NextcloudOAuthConfig:
    base = (os.getenv("OAUTH_NEXTCLOUD_BASE_URL") or "https://cloud.example.com").rstrip("/")
    return NextcloudOAuthConfig(
        client_id=os.getenv("OAUTH_NEXTCLOUD_CLIENT_ID", ""),
        client_secret=os.getenv("OAUTH_NEXTCLOUD_CLIENT_SECRET", ""),
        callback_url=os.getenv(
            "OAUTH_NEXTCLOUD_CALLBACK_URL",
            "http://localhost:3000/auth/oauth/nextcloud/callback",
        ),
        base_url=base,
        authorization_url=f"{base}/index.php/apps/oauth2/authorize",
        token_url=f"{base}/index.php/apps/oauth2/api/v1/token",
        user_info_url=f"{base}/ocs/v2.php/cloud/user?format=json",
    )


PROVIDER_CONFIGS = {
    "google": google_oauth_config,
    "microsoft": microsoft_oauth_config,
    "nextcloud": nextcloud_oauth_config,
}
