"""
API request and response models for userauth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
Password hashes never appear in any response model.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import AuthTokens, IssuedToken, User
from auth.roles import Role
from auth.tokens import check_password_rules
from db.paginate import Page

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _PasswordMixin(BaseModel):
    @field_validator("password", check_fields=False)
    @classmethod
    def password_rules(cls, v: Optional[str]) -> Optional[str]:
        """At least 8 characters with at least one letter and one digit."""
        if v is None:
            return v
        return check_password_rules(v)


class RegisterRequest(_PasswordMixin):
    """Request body for POST /api/v1/auth/register."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=255)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/logout and /auth/refresh-tokens."""

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(_PasswordMixin):
    password: str = Field(max_length=255)


class UserCreate(_PasswordMixin):
    """Request body for POST /api/v1/users (admin)."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(max_length=255)
    role: Role = Role.USER


class UserPatch(_PasswordMixin):
    """Request body for PATCH /api/v1/users/{user_id}. At least one field is required."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UserPatch":
        if self.name is None and self.email is None and self.password is None:
            raise ValueError("at least one of name, email, password is required")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: Role
    is_email_verified: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view of a User. The password hash is dropped here."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_email_verified=user.is_email_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    expires: str

    @classmethod
    def from_issued(cls, issued: IssuedToken) -> "TokenResponse":
        return cls(token=issued.token, expires=issued.expires)


class AuthTokensResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh-tokens, nested in AuthResponse."""

    model_config = ConfigDict(frozen=True)

    access: TokenResponse
    refresh: TokenResponse

    @classmethod
    def from_tokens(cls, tokens: AuthTokens) -> "AuthTokensResponse":
        return cls(access=TokenResponse.from_issued(tokens.access), refresh=TokenResponse.from_issued(tokens.refresh))


class AuthResponse(BaseModel):
    """Response for POST /api/v1/auth/register and /auth/login."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    tokens: AuthTokensResponse


class UserPageResponse(BaseModel):
    """Response for GET /api/v1/users."""

    model_config = ConfigDict(frozen=True)

    results: list[UserResponse]
    page: int
    limit: int
    total_pages: int
    total_results: int

    @classmethod
    def from_page(cls, page: Page) -> "UserPageResponse":
        return cls(
            results=[UserResponse.from_user(u) for u in page.results],
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
            total_results=page.total_results,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
