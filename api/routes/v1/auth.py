"""
api/routes/v1/auth.py -- Registration, login and token lifecycle endpoints.

Routes:
  POST /api/v1/auth/register                -- create account; returns user + token pair
  POST /api/v1/auth/login                   -- email/password login; returns user + token pair
  POST /api/v1/auth/logout                  -- revoke a refresh token; 204
  POST /api/v1/auth/refresh-tokens          -- rotate a refresh token; returns a new pair
  POST /api/v1/auth/forgot-password         -- email a reset-password link; 204
  POST /api/v1/auth/reset-password?token=   -- set a new password with a reset token; 204
  POST /api/v1/auth/send-verification-email -- email a verify link to the caller (requires auth); 204
  POST /api/v1/auth/verify-email?token=     -- mark email verified; 204

Security:
  register, login and forgot-password are rate-limited per IP
  (Settings.auth_rate_limit).
  Token responses carry Cache-Control: no-store.
  Failures are raised as core.errors types; api/main.py renders them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthResponse,
    AuthTokensResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import AuthTokens, User
from auth.service import AuthService, TokenManager
from auth.users import UserService
from core.config import get_settings
from mail.sender import EmailSender

# Auth policy:
# - POST /auth/register, /login, /logout, /refresh-tokens:  public
# - POST /auth/forgot-password, /reset-password:            public
# - POST /auth/verify-email:                                public (token is the credential)
# - POST /auth/send-verification-email:                     requires auth (get_current_user)
router = APIRouter()

_AUTH_RATE_LIMIT = get_settings().auth_rate_limit


def _auth_response(user: User, tokens: AuthTokens, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserResponse.from_user(user),
            tokens=AuthTokensResponse.from_tokens(tokens),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a user account with the default role and log it in."""
    users: UserService = request.app.state.users
    tokens: TokenManager = request.app.state.tokens
    user = users.create_user(name=body.name, email=body.email, password=body.password)
    return _auth_response(user, tokens.generate_auth_tokens(user), 201)


@limiter.limit(_AUTH_RATE_LIMIT)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong email and wrong password return the same 401 so the response does
    not reveal which emails are registered.
    """
    auth: AuthService = request.app.state.auth
    tokens: TokenManager = request.app.state.tokens
    user = auth.login_with_email_and_password(body.email, body.password)
    return _auth_response(user, tokens.generate_auth_tokens(user), 200)


@router.post("/auth/logout", status_code=204)
def logout(request: Request, body: RefreshTokenRequest) -> Response:
    """Revoke a refresh token. 404 if it is unknown or already revoked."""
    auth: AuthService = request.app.state.auth
    auth.logout(body.refresh_token)
    return Response(status_code=204)


@router.post("/auth/refresh-tokens", response_model=AuthTokensResponse)
def refresh_tokens(request: Request, body: RefreshTokenRequest) -> JSONResponse:
    """Exchange a refresh token for a new access/refresh pair. The old refresh token is consumed."""
    auth: AuthService = request.app.state.auth
    tokens = auth.refresh_auth(body.refresh_token)
    resp = JSONResponse(content=AuthTokensResponse.from_tokens(tokens).model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_AUTH_RATE_LIMIT)
@router.post("/auth/forgot-password", status_code=204)
async def forgot_password(request: Request, body: ForgotPasswordRequest) -> Response:
    """Email a reset-password link. 404 if no account uses the email."""
    tokens: TokenManager = request.app.state.tokens
    email: EmailSender = request.app.state.email
    reset_token = tokens.generate_reset_password_token(body.email)
    await email.send_reset_password_email(body.email, reset_token)
    return Response(status_code=204)


@router.post("/auth/reset-password", status_code=204)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    token: str = Query(min_length=1),
) -> Response:
    """Set a new password. The reset token works once."""
    auth: AuthService = request.app.state.auth
    auth.reset_password(token, body.password)
    return Response(status_code=204)


@router.post("/auth/send-verification-email", status_code=204)
async def send_verification_email(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> Response:
    """Email a verify-email link to the authenticated user."""
    tokens: TokenManager = request.app.state.tokens
    email: EmailSender = request.app.state.email
    verify_token = tokens.generate_verify_email_token(current_user)
    await email.send_verification_email(current_user.email, verify_token)
    return Response(status_code=204)


@router.post("/auth/verify-email", status_code=204)
def verify_email(request: Request, token: str = Query(min_length=1)) -> Response:
    """Mark the token owner's email as verified. The token works once."""
    auth: AuthService = request.app.state.auth
    auth.verify_email(token)
    return Response(status_code=204)
