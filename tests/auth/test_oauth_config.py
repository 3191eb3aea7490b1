"""Tests for auth/oauth_config.py - provider configuration from environment."""

import pytest

from auth.oauth_config import (
    PROVIDER_CONFIGS,
    OAuthProviderConfig,
    google_oauth_config,
    microsoft_oauth_config,
    nextcloud_oauth_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for provider in ("GOOGLE", "MICROSOFT", "NEXTCLOUD"):
        for suffix in ("CLIENT_ID", "CLIENT_SECRET", "CALLBACK_URL"):
            monkeypatch.delenv(f"OAUTH_{provider}_{suffix}", raising=False)
    monkeypatch.delenv("OAUTH_MICROSOFT_TENANT_ID", raising=False)
    monkeypatch.delenv("OAUTH_NEXTCLOUD_BASE_URL", raising=False)


class TestIsConfigured:
    def test_requires_id_and_secret(self):
        assert OAuthProviderConfig(client_id="a", client_secret="b").is_configured is True
        assert OAuthProviderConfig(client_id="a").is_configured is False
        assert OAuthProviderConfig().is_configured is False


class TestFromEnvironment:
    def test_unset_is_unconfigured(self):
        for factory in PROVIDER_CONFIGS.values():
            assert factory().is_configured is False

    def test_google(self, monkeypatch):
        monkeypatch.setenv("OAUTH_GOOGLE_CLIENT_ID", "gid")
        monkeypatch.setenv("OAUTH_GOOGLE_CLIENT_SECRET", "gsecret")

        cfg = google_oauth_config()

        assert cfg.is_configured
        assert "email" in cfg.scope

    def test_microsoft_tenant_default(self, monkeypatch):
        assert microsoft_oauth_config().tenant_id == "common"

        monkeypatch.setenv("OAUTH_MICROSOFT_TENANT_ID", "contoso")
        assert microsoft_oauth_config().tenant_id == "contoso"

    def test_nextcloud_endpoints_from_base(self, monkeypatch):
        monkeypatch.setenv("OAUTH_NEXTCLOUD_BASE_URL", "https://cloud.acme.org/")

        cfg = nextcloud_oauth_config()

        assert cfg.base_url == "https://cloud.acme.org"
        assert cfg.token_url == "https://cloud.acme.org/index.php/apps/oauth2/api/v1/token"
        assert cfg.user_info_url.startswith("https://cloud.acme.org/ocs/v2.php/cloud/user")
