"""
Valkey (Redis-compatible) client for session storage.

Thin wrapper around redis-py. Connection URL from Vault. Every key is
namespaced so identity sessions never collide with other tenants of the same
Valkey instance. Socket timeouts bound each round-trip; a timeout raises
redis.TimeoutError and is never reported as a missing key.
"""

import json
import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0", namespace="identity")
        client.set_json("session:abc", {"account_id": "..."}, expire_seconds=300)
        data = client.get_json("session:abc")  # None if missing
    """

    def __init__(
        self,
        url: str,
        namespace: str = "identity",
        socket_timeout: float = 2.0,
    ):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            namespace: Prefix applied to every key
            socket_timeout: Seconds allowed for connect and each command

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._namespace = namespace
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info(f"ValkeyClient connected (namespace={namespace})")

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def ping(self) -> bool:
        """
        Health check.

        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns True if key existed and was deleted, False if key didn't exist.
        """
        return self._client.delete(self._key(key)) > 0

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        """Set key to JSON-serialized value, optionally with a TTL."""
        payload = json.dumps(value)
        if expire_seconds is not None:
            self._client.setex(self._key(key), expire_seconds, payload)
        else:
            self._client.set(self._key(key), payload)

    def get_json(self, key: str) -> dict | list | None:
        """
        Get and deserialize JSON value.

        Returns None if key doesn't exist.
        Raises ValueError if value is not valid JSON.
        """
        value = self._client.get(self._key(key))
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
