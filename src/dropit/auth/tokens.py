"""Password hashing and JWT access tokens.

Passwords are hashed with bcrypt.  Tokens are HS256 JWTs signed with
``JWT_SECRET_KEY`` and carry ``sub`` (user id), ``email``, ``jti``, ``iat``
and ``exp``.  Token payloads are never logged.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from dropit.domain.errors import DropItError

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


class TokenError(DropItError):
    """Raised when an access token is malformed, expired, or badly signed."""


def hash_password(password: str) -> str:
    """Hash *password* with a fresh bcrypt salt.

    Raises:
        ValueError: If the password is longer than bcrypt can hash.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))


def create_access_token(
    subject: str,
    email: str,
    *,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60 * 24,
    now: datetime | None = None,
) -> str:
    """Issue a signed access token for a user."""
    issued_at = now or datetime.now(tz=UTC)
    claims: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_access_token(token: str, *, secret_key: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Verify *token* and return its claims.

    Raises:
        TokenError: If the signature is wrong, the token expired, or a
            required claim is missing.
    """
    try:
        claims = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as exc:
        raise TokenError("Invalid or expired token") from exc

    if not claims.get("sub") or not claims.get("jti"):
        raise TokenError("Invalid or expired token")
    return dict(claims)
