"""Turn provider-specific OAuth payloads into one OAuthProfile shape.

Pure functions, no I/O. Every extractor tolerates missing keys; an absent
value becomes an empty string.
"""

from typing import Any

from auth.types import OAuthProfile

SUPPORTED_OAUTH_PROVIDERS = ("google", "microsoft", "nextcloud")


def is_supported_provider(value: Any) -> bool:
    """Exact, case-sensitive membership check."""
    return isinstance(value, str) and value in SUPPORTED_OAUTH_PROVIDERS


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_profile(
    provider: Any,
    provider_id: Any,
    email: Any,
    display_name: Any,
    avatar_url: Any,
) -> OAuthProfile:
    """Build an immutable profile. Total over its inputs."""
    return OAuthProfile(
        provider=_as_str(provider),
        provider_id=_as_str(provider_id),
        email=_as_str(email),
        display_name=_as_str(display_name),
        avatar_url=_as_str(avatar_url),
    )


def _first_value(items: Any) -> Any:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0].get("value")
    return None


def profile_from_google(raw: dict) -> OAuthProfile:
    raw = raw or {}
    claims = raw.get("_json") or {}
    return normalize_profile(
        "google",
        raw.get("id"),
        _first_value(raw.get("emails")) or claims.get("email") or "",
        raw.get("displayName") or "",
        _first_value(raw.get("photos")) or "",
    )


def profile_from_microsoft(raw: dict) -> OAuthProfile:
    raw = raw or {}
    claims = raw.get("_json") or {}
    return normalize_profile(
        "microsoft",
        raw.get("id") or claims.get("oid") or "",
        _first_value(raw.get("emails"))
        or claims.get("email")
        or claims.get("preferred_username")
        or "",
        raw.get("displayName") or "",
        "",
    )


def profile_from_nextcloud(payload: dict) -> OAuthProfile:
    """Profile from the Nextcloud OCS user endpoint response."""
    data = ((payload or {}).get("ocs") or {}).get("data") or {}
    return normalize_profile(
        "nextcloud",
        data.get("id") or "",
        data.get("email") or "",
        data.get("display-name") or data.get("displayname") or "",
        "",
    )
