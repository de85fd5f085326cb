"""Local-account credentials: bcrypt password hashes and self-issued JWT access tokens."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from vulnradar.core.config import settings

BCRYPT_ROUNDS = 12
# bcrypt ignores input past 72 bytes.
BCRYPT_MAX_BYTES = 72

EMAIL_MIN_LEN = 3
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Tokens we sign carry this issuer; anything else is handed to the identity provider.
LOCAL_TOKEN_ISSUER = "vulnradar"


def _password_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(plain_password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """
    Check a password against a stored hash. Identity-provider accounts have no hash and
    never match; a malformed stored hash is treated as a mismatch.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(sub: str | int, role: str) -> str:
    issued_at = datetime.now(UTC)
    claims: dict[str, Any] = {
        "iss": LOCAL_TOKEN_ISSUER,
        "sub": str(sub),
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, settings.JWT_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Validated claims of a token we issued. Raises jwt.ExpiredSignatureError or another jwt.PyJWTError."""
    return jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        issuer=LOCAL_TOKEN_ISSUER,
        options={"require": ["exp", "iss", "sub"]},
    )
