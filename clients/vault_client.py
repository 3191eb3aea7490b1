"""
HashiCorp Vault client for identity-service secrets.

Uses AppRole authentication. Fails fast on missing configuration.
All paths scoped to the 'identity/' prefix - no escape to other secrets.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "identity"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def reset_vault_cache() -> None:
    """Drop the singleton and cached secrets (tests, credential rotation)."""
    global _vault_client_instance
    _vault_client_instance = None
    _secret_cache.clear()


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        timeout: int = 10,
    ):
        """Initialize with environment variables. Fails fast on missing config."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr, "timeout": timeout}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._authenticate_approle()

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _authenticate_approle(self) -> None:
        """Authenticate using AppRole credentials."""
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
            self.client.token = auth_response["auth"]["client_token"]
            logger.info("AppRole authentication successful")
        except Exception as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}")

    def _read(self, path: str) -> dict:
        """
        Read a KV v2 secret under the identity scope.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")
        return response["data"]["data"]

    def get_fields(self, path: str, fields: tuple[str, ...]) -> Dict[str, str]:
        """
        Retrieve several fields of one secret with a single read.

        Path is automatically scoped: caller passes 'database',
        we read 'identity/database'.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
            KeyError: A field is missing from the secret.
        """
        secret_data = self._read(path)
        missing = [f for f in fields if f not in secret_data]
        if missing:
            raise KeyError(
                f"Fields {missing} not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(secret_data)}"
            )
        return {f: secret_data[f] for f in fields}

    def get_secret(self, path: str, field: str) -> str:
        """Retrieve a single field; see get_fields."""
        return self.get_fields(path, (field,))[field]


# Convenience functions


def _cached_fields(path: str, *fields: str) -> Dict[str, str]:
    keys = [f"{path}/{f}" for f in fields]
    if not all(k in _secret_cache for k in keys):
        values = _ensure_vault_client().get_fields(path, fields)
        _secret_cache.update({f"{path}/{f}": v for f, v in values.items()})
    return {f: _secret_cache[f"{path}/{f}"] for f in fields}


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _cached_fields("database", "url")["url"]


def get_valkey_url() -> str:
    """Valkey connection URL."""
    return _cached_fields("valkey", "url")["url"]


def get_email_config() -> Dict[str, str]:
    """Email gateway settings: gateway_url, api_key, hmac_secret."""
    return _cached_fields("email", "gateway_url", "api_key", "hmac_secret")
