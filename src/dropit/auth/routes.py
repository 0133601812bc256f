"""Account endpoints: ``/signup``, ``/login``, ``/verify-token``, ``/logout``.

Error bodies use ``{"error": message}``, the shape the browser client reads.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dropit.auth.dependencies import BearerCredentials, CurrentUser, get_auth_service
from dropit.auth.service import DuplicateUser, InvalidCredentials
from dropit.domain.errors import ValidationError

router = APIRouter(tags=["auth"])


class CredentialsBody(BaseModel):
    email: str | None = None
    password: str | None = None


@router.post("/signup", response_model=None)
async def signup(body: CredentialsBody, request: Request) -> dict[str, Any] | JSONResponse:
    """Create an account and return ``{token, user}``."""
    auth = get_auth_service(request)
    try:
        token, user = auth.signup(body.email, body.password)
    except ValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except DuplicateUser as exc:
        return JSONResponse({"error": str(exc)}, status_code=409)
    return {"token": token, "user": user.public()}


@router.post("/login", response_model=None)
async def login(body: CredentialsBody, request: Request) -> dict[str, Any] | JSONResponse:
    """Exchange email and password for ``{token, user}``."""
    auth = get_auth_service(request)
    try:
        token, user = auth.login(body.email, body.password)
    except InvalidCredentials as exc:
        return JSONResponse({"error": str(exc)}, status_code=401)
    return {"token": token, "user": user.public()}


@router.get("/verify-token")
async def verify_token(user: CurrentUser) -> dict[str, Any]:
    return {"user": user.public()}


@router.post("/logout")
async def logout(request: Request, credentials: BearerCredentials = None) -> dict[str, bool]:
    get_auth_service(request).logout(credentials.credentials if credentials else None)
    return {"success": True}
