"""One-time codes, opaque tokens and Argon2 password hashing."""

import secrets
from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from propertyhub.config import settings


def six_digit_code() -> str:
    """Random code in [100000, 999999] as six decimal digits."""
    return str(100000 + secrets.randbelow(900000))


def opaque_token() -> str:
    """Unguessable URL-safe lookup token (64 chars)."""
    return secrets.token_urlsafe(48)


def codes_match(expected: str | None, presented: str) -> bool:
    """Constant-time comparison of a stored code against user input."""
    if expected is None:
        return False
    return secrets.compare_digest(expected.encode(), presented.encode())


@lru_cache(maxsize=1)
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )


def hash_password(raw: str) -> str:
    return get_password_hasher().hash(raw)


def verify_password(raw: str, digest: str) -> bool:
    """Check a raw password against an Argon2 digest. Returns False on any mismatch."""
    try:
        return get_password_hasher().verify(digest, raw)
    except (VerificationError, InvalidHashError):
        return False


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Digest verified against when the account doesn't exist, so lookups
    for unknown emails take as long as a real password check."""
    return hash_password(secrets.token_hex(16))
