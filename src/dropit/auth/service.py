"""In-memory user accounts and token lifecycle.

Accounts and revoked tokens live in process memory and are lost on restart,
the same as negotiation records.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field

from dropit.auth.tokens import (
    TokenError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from dropit.config import Settings
from dropit.domain.errors import DropItError, ValidationError

logger = structlog.get_logger()

MIN_PASSWORD_LENGTH = 6


class User(BaseModel):
    """A registered account."""

    id: str
    email: str
    password_hash: str = Field(repr=False)
    created_at: datetime

    def public(self) -> dict[str, str]:
        """Fields safe to send to the browser."""
        return {"id": self.id, "email": self.email}


class DuplicateUser(DropItError):
    """Raised on signup with an email that is already registered."""


class InvalidCredentials(DropItError):
    """Raised when an email/password pair or a bearer token is rejected."""


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class AuthService:
    """Signup, login, token verification and logout."""

    def __init__(self, settings: Settings) -> None:
        self._secret_key = settings.jwt_secret_key.get_secret_value()
        if not self._secret_key:
            # Tokens will not survive a restart.
            logger.warning("JWT_SECRET_KEY not set, using an ephemeral signing key")
            self._secret_key = secrets.token_urlsafe(32)
        self._algorithm = settings.jwt_algorithm
        self._expires_minutes = settings.access_token_expire_minutes
        self._users: dict[str, User] = {}
        self._revoked: set[str] = set()

    def _issue_token(self, user: User) -> str:
        return create_access_token(
            user.id,
            user.email,
            secret_key=self._secret_key,
            algorithm=self._algorithm,
            expires_minutes=self._expires_minutes,
        )

    def signup(self, email: str | None, password: str | None) -> tuple[str, User]:
        """Register a new account and log it in.

        Raises:
            ValidationError: If the email or password is missing or unusable.
            DuplicateUser: If the email is already registered.
        """
        email = _normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and password are required")
        if "@" not in email:
            raise ValidationError("Please enter a valid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if email in self._users:
            raise DuplicateUser("User already exists")

        try:
            password_hash = hash_password(password)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        user = User(
            id=uuid4().hex,
            email=email,
            password_hash=password_hash,
            created_at=datetime.now(tz=UTC),
        )
        self._users[email] = user
        logger.info("User signed up", user_id=user.id)
        return self._issue_token(user), user

    def login(self, email: str | None, password: str | None) -> tuple[str, User]:
        """Check credentials and issue a token.

        Raises:
            InvalidCredentials: If the email is unknown or the password is wrong.
        """
        user = self._users.get(_normalize_email(email))
        if user is None or not password or not verify_password(password, user.password_hash):
            logger.warning("Login rejected")
            raise InvalidCredentials("Invalid email or password")
        logger.info("User logged in", user_id=user.id)
        return self._issue_token(user), user

    def verify(self, token: str) -> User:
        """Return the account a token belongs to.

        Raises:
            InvalidCredentials: If the token is invalid, expired, revoked, or
                belongs to an unknown account.
        """
        try:
            claims = decode_access_token(
                token, secret_key=self._secret_key, algorithm=self._algorithm
            )
        except TokenError as exc:
            raise InvalidCredentials(str(exc)) from exc

        if claims["jti"] in self._revoked:
            raise InvalidCredentials("Token has been revoked")

        user = self._users.get(_normalize_email(claims.get("email")))
        if user is None or user.id != claims["sub"]:
            raise InvalidCredentials("Invalid or expired token")
        return user

    def logout(self, token: str | None) -> None:
        """Revoke *token*.  Unknown or invalid tokens are ignored."""
        if not token:
            return
        try:
            claims = decode_access_token(
                token, secret_key=self._secret_key, algorithm=self._algorithm
            )
        except TokenError:
            return
        self._revoked.add(claims["jti"])
        logger.info("User logged out", user_id=claims["sub"])
