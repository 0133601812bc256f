"""Authentication collaborator: accounts, bearer tokens, request identity."""

from dropit.auth.dependencies import CurrentUser, OptionalUser
from dropit.auth.service import AuthService, DuplicateUser, InvalidCredentials, User

__all__ = [
    "AuthService",
    "CurrentUser",
    "DuplicateUser",
    "InvalidCredentials",
    "OptionalUser",
    "User",
]
