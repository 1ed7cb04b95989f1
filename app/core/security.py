# app/core/security.py
"""
Password hashing and one-time token helpers.

Hashing uses PBKDF2-SHA256 through passlib. The work factor comes from
settings so deployments can raise it without a code change.
"""

import secrets
from datetime import timedelta

from passlib.context import CryptContext

from app.core.config import get_settings
from app.core.errors import PasswordHashingError

settings = get_settings()

# Lifetime of the opaque tokens sent by email
EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)

# Number of random bytes behind each opaque token (hex doubles the length)
TOKEN_BYTES = 20

password_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=settings.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    try:
        return password_context.hash(password)
    except (TypeError, ValueError) as exc:
        raise PasswordHashingError("Error hashing password") from exc


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a plain password against the stored hash.

    Returns False on mismatch. Raises ValueError if `password_hash` is not a
    hash this context understands.
    """
    return password_context.verify(password, password_hash)


def issue_token() -> str:
    """Return a fresh single-use bearer token (hex encoded)."""
    return secrets.token_hex(TOKEN_BYTES)
