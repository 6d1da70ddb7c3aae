"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these classes only own the domain shape.

Layer rule: no imports from api/, db/, or mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.roles import Role


class TokenType(str, Enum):
    """Kinds of signed token. Wire values match the `type` JWT claim."""

    ACCESS = "access"
    REFRESH = "refresh"
    RESET_PASSWORD = "resetPassword"
    VERIFY_EMAIL = "verifyEmail"


# Access tokens are stateless; only these kinds get a row in the tokens table.
PERSISTED_TOKEN_TYPES: tuple[TokenType, ...] = (
    TokenType.REFRESH,
    TokenType.RESET_PASSWORD,
    TokenType.VERIFY_EMAIL,
)


@dataclass
class User:
    """An account that can authenticate against the API.

    email is always stored lowercased and stripped. hashed_password holds the
    bcrypt hash and never leaves the service layer -- API response models
    omit it.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    role: Role = Role.USER
    is_email_verified: bool = False
    id: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Token:
    """A persisted, revocable credential (refresh, reset-password, verify-email).

    expires mirrors the JWT `exp` claim as an ISO 8601 UTC string. A
    blacklisted row is never accepted by TokenManager.verify_token().
    """

    token: str
    user_id: str
    type: TokenType
    expires: str
    blacklisted: bool = False
    id: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class IssuedToken:
    """A freshly signed token and its expiry, as returned to clients."""

    token: str
    expires: str  # ISO 8601


@dataclass
class AuthTokens:
    access: IssuedToken
    refresh: IssuedToken
