"""
auth/tokens.py -- JWT signing and password hashing primitives.

Security design decisions:
  JWT: python-jose with HS256. Every token carries sub (user id), iat, exp,
       type and a random jti. The type claim keeps a refresh token from being
       replayed as an access token and vice versa. jti makes two tokens issued
       for the same user in the same second distinct strings, so a rotated
       refresh token can never be re-issued byte-for-byte.

  Passwords: bcrypt directly (no passlib wrapper). bcrypt's cost factor makes
       brute-force expensive for low-entropy secrets. _DUMMY_HASH enables
       timing equalization in AuthService.login_with_email_and_password() so
       response time does not reveal whether an email is registered.

  Secrets are passed in by the caller (TokenManager holds the Settings).
  This module reads no configuration of its own.

Layer rule: no imports from api/, db/, or mail/.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenType

ALGORITHM = "HS256"

_LETTER_RE = re.compile(r"[a-zA-Z]")
_DIGIT_RE = re.compile(r"\d")

# ---------------------------------------------------------------------------
# Password rules and hashing
# ---------------------------------------------------------------------------


def check_password_rules(plain: str) -> str:
    """Return plain unchanged if it satisfies the password policy.

    Policy: at least 8 characters, at least one letter and one digit.
    Raises ValueError otherwise, so the same check serves as a Pydantic
    field validator and as the write-path guard in UserService.
    """
    if len(plain) < 8:
        raise ValueError("password must be at least 8 characters")
    if not _LETTER_RE.search(plain) or not _DIGIT_RE.search(plain):
        raise ValueError("password must contain at least 1 letter and 1 number")
    return plain


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    passwords at 255 characters, and the policy above only sets a minimum.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database.
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
DUMMY_HASH: str = hash_password("userauth_timing_dummy1")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def encode_token(user_id: str, expires: datetime, token_type: TokenType, secret: str) -> str:
    """Sign a JWT for user_id that expires at `expires` (aware datetime)."""
    payload = {
        "sub": str(user_id),
        "iat": int(datetime.now(timezone.utc).timestamp()),
        "exp": int(expires.timestamp()),
        "type": token_type.value,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, token_type: TokenType, secret: str) -> dict | None:
    """Verify signature, expiry and type. Returns the claims or None on any failure.

    Returning None (rather than raising) keeps this primitive free of the
    error taxonomy; TokenManager turns None into Unauthorized.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type.value or not payload.get("sub"):
        return None
    return payload
