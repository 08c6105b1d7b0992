"""
Credential and Token Primitives

- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, 12 by default)
- Access tokens are HS256 JWTs carrying the account id and role
- One-time tokens (password reset, access invitations) come from `secrets`;
  reset tokens are stored only as their SHA-256 digest
"""

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from tablehub.core.config import get_settings
from tablehub.core.errors import TokenExpired, TokenInvalid


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    settings = get_settings()
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_reset_token() -> tuple[str, str]:
    """Return (raw token for the email link, digest for the database)."""
    raw = secrets.token_hex(32)
    return raw, hash_token(raw)


def generate_invitation_token() -> str:
    """One-time access-grant token, 24 bytes of entropy."""
    return secrets.token_hex(24)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def encode_access_token(subject: str, role: str, ttl: timedelta) -> tuple[str, datetime]:
    """
    Sign an access token.

    Returns:
        (token, expiry as naive UTC)
    """
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + ttl
    payload = {
        "sub": subject,
        "role": role,
        "iat": issued_at,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at.replace(tzinfo=None)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify signature and expiry of an access token.

    Raises:
        TokenExpired: the token's `exp` has passed
        TokenInvalid: bad signature, malformed token, or missing claims
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "role", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise TokenInvalid()
    return payload
