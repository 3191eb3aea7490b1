"""Password hashing and password policy.

Argon2id via passlib (argon2-cffi backend). Slow, salted, one-way; the hash
string carries its own parameters so they can be raised later without
invalidating stored hashes.
"""

import hashlib
import re

from passlib.hash import argon2

_hasher = argon2.using(
    type="ID",
    time_cost=2,
    memory_cost=65_536,  # 64 MiB
    parallelism=2,
)

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"\d")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a hash written by hash_password.

    Nothing in this service logs in with a password; this is the read side
    of the password_hash format that reset writes, kept beside the writer so
    both change together. False for an empty hash (account has no local
    password).
    """
    if not password_hash:
        return False
    try:
        return argon2.verify(password, password_hash)
    except ValueError:
        return False


def password_meets_policy(password: str, min_length: int = 10) -> bool:
    """All four classes required: lowercase, uppercase, digit, symbol."""
    if len(password) < min_length:
        return False
    return all(
        pattern.search(password)
        for pattern in (_LOWER, _UPPER, _DIGIT, _SYMBOL)
    )


def sha256_hex(value: str) -> str:
    """Hex SHA-256 of a string. Used for reset tokens and requester IPs."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
