"""
api/routes/v1/users.py -- User management endpoints.

Routes:
  POST   /api/v1/users             -- create a user with any role (manage_users)
  GET    /api/v1/users             -- filtered, sorted, paginated list (get_users)
  GET    /api/v1/users/{user_id}   -- one user (get_users, or self)
  PATCH  /api/v1/users/{user_id}   -- update name/email/password (manage_users, or self)
  DELETE /api/v1/users/{user_id}   -- delete user and their tokens (manage_users, or self)

Rights are checked by require_rights(); it lets a caller through without the
right when {user_id} is their own id.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import UserCreate, UserPageResponse, UserPatch, UserResponse
from auth.dependencies import require_rights
from auth.models import User
from auth.roles import Right
from auth.users import UserService
from core.errors import NotFound

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    _: User = Depends(require_rights(Right.MANAGE_USERS)),
) -> UserResponse:
    """Create a user. Unlike /auth/register the caller picks the role."""
    users: UserService = request.app.state.users
    user = users.create_user(name=body.name, email=body.email, password=body.password, role=body.role)
    return UserResponse.from_user(user)


@router.get("/users", response_model=UserPageResponse)
def list_users(
    request: Request,
    name: Optional[str] = Query(default=None),
    role: Optional[str] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    page: Optional[str] = Query(default=None),
    _: User = Depends(require_rights(Right.GET_USERS)),
) -> UserPageResponse:
    """List users.

    name and role are exact-match filters. sort_by takes "field:dir" pairs,
    comma-separated, over name, email, role, is_email_verified, created_at
    or updated_at. limit and page fall back to 10 and 1 when missing or not
    positive integers.
    """
    users: UserService = request.app.state.users
    filters = {key: value for key, value in (("name", name), ("role", role)) if value is not None}
    options = {"sort_by": sort_by, "limit": limit, "page": page}
    return UserPageResponse.from_page(users.query_users(filters, options))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: str,
    _: User = Depends(require_rights(Right.GET_USERS)),
) -> UserResponse:
    users: UserService = request.app.state.users
    user = users.get_user_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return UserResponse.from_user(user)


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    _: User = Depends(require_rights(Right.MANAGE_USERS)),
) -> UserResponse:
    """Update the fields present in the body. Role is not editable here."""
    users: UserService = request.app.state.users
    user = users.update_user_by_id(user_id, **body.model_dump(exclude_none=True))
    return UserResponse.from_user(user)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: str,
    _: User = Depends(require_rights(Right.MANAGE_USERS)),
) -> Response:
    users: UserService = request.app.state.users
    users.delete_user_by_id(user_id)
    return Response(status_code=204)
