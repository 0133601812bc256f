"""FastAPI dependencies that attach the caller's identity to a request."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dropit.auth.service import AuthService, InvalidCredentials, User

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.services["auth"]


async def get_optional_user(
    request: Request,
    credentials: BearerCredentials = None,
) -> User | None:
    """The authenticated user, or ``None`` for anonymous or invalid tokens.

    Anonymous callers are allowed wherever this dependency is used, so a bad
    token downgrades the request to anonymous instead of rejecting it.
    """
    if credentials is None:
        return None
    try:
        return get_auth_service(request).verify(credentials.credentials)
    except InvalidCredentials:
        logger.warning("Ignoring invalid bearer token")
        return None


async def get_current_user(
    request: Request,
    credentials: BearerCredentials = None,
) -> User:
    """The authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired, or revoked.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return get_auth_service(request).verify(credentials.credentials)
    except InvalidCredentials as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


OptionalUser = Annotated[User | None, Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
