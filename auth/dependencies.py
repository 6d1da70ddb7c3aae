"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Authentication uses the Authorization: Bearer <access token> header. The
token is verified statelessly (signature, exp, type) by TokenManager; the
user row is then loaded so role and email are current.

get_current_user() raises Unauthorized when the request is not authenticated.
require_rights(...) builds a dependency that additionally raises Forbidden
when the user's role lacks a right -- unless the route's {user_id} path
parameter is the caller's own id, which lets users read and edit their own
record without admin rights.

Both raise core.errors types; api/main.py converts them to 401/403.

Layer rule: no imports from db/ or mail/. This module may import from
fastapi because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import TokenType, User
from auth.roles import Right, has_rights
from core.errors import Forbidden, Unauthorized


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user(request: Request) -> User:
    """Require a valid access token. Raises Unauthorized otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthorized("Please authenticate")
    try:
        claims = request.app.state.tokens.verify_token(token, TokenType.ACCESS)
    except Unauthorized as exc:
        raise Unauthorized("Please authenticate") from exc
    user = request.app.state.users.get_user_by_id(claims["sub"])
    if user is None:
        raise Unauthorized("Please authenticate")
    return user


def require_rights(*rights: Right) -> Callable[..., User]:
    """Build a dependency requiring every right in `rights` (or self-access).

    Use as a FastAPI dependency:
        @router.get("/users")
        async def route(user: User = Depends(require_rights(Right.GET_USERS))): ...
    """
    required = frozenset(rights)

    def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if required and not has_rights(user.role, required):
            if request.path_params.get("user_id") != user.id:
                raise Forbidden("Forbidden")
        return user

    return dependency
