"""
auth/service.py -- Token lifecycle and the authentication flows built on it.

TokenManager issues and verifies signed tokens and persists the revocable
kinds. Per persisted token the lifecycle is:

    issued -> valid until exp -> consumed (row deleted)
                              -> blacklisted (row kept, never accepted)
                              -> expired (rejected by the exp check on decode)

Expired rows are not swept; they simply stop verifying.

Access tokens are verified by signature and exp alone -- no database round
trip on the hot path. Refresh, reset-password and verify-email tokens must
also match a non-blacklisted row, which is what makes them revocable.

AuthService composes TokenManager with UserService for login, logout,
refresh rotation, password reset and email verification. Every single-use
flow goes through TokenManager.consume_token(), an atomic verify-and-delete.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from auth.models import PERSISTED_TOKEN_TYPES, AuthTokens, IssuedToken, Token, TokenType, User
from auth.store import TokenStore, UserStore
from auth.tokens import DUMMY_HASH, check_password_rules, decode_token, encode_token, verify_password
from auth.users import UserService
from core.config import Settings
from core.errors import ApiError, NotFound, Unauthorized, ValidationFailure

logger = logging.getLogger("userauth.auth")


def _now_seconds() -> datetime:
    """Current UTC time truncated to whole seconds, the resolution of the exp claim."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class TokenManager:
    """Issue, verify and consume signed tokens.

    Usage:
        tokens = TokenManager(settings, TokenStore(database), UserStore(database))
        pair = tokens.generate_auth_tokens(user)
        claims = tokens.verify_token(pair.access.token, TokenType.ACCESS)
    """

    def __init__(self, settings: Settings, token_store: TokenStore, user_store: UserStore) -> None:
        self.settings = settings
        self.token_store = token_store
        self.user_store = user_store

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def generate_token(
        self, user_id: str, expires: datetime, token_type: TokenType, secret: str | None = None
    ) -> str:
        """Sign a token for user_id. secret defaults to the configured SECRET_KEY."""
        return encode_token(user_id, expires, token_type, secret or self.settings.secret_key)

    def save_token(
        self, token: str, user_id: str, expires: datetime, token_type: TokenType, blacklisted: bool = False
    ) -> Token:
        """Persist a revocable token. Access tokens are rejected -- they are stateless."""
        if token_type not in PERSISTED_TOKEN_TYPES:
            raise ValueError(f"{token_type.value} tokens are not persisted")
        return self.token_store.create_token(
            Token(
                token=token,
                user_id=user_id,
                type=token_type,
                expires=expires.isoformat(),
                blacklisted=blacklisted,
            )
        )

    def verify_token(self, token: str, token_type: TokenType) -> dict | Token:
        """Verify a token of the expected type.

        Returns the decoded claims for access tokens and the stored Token
        record for persisted types.

        Raises:
            Unauthorized: bad signature, expired, wrong type, or (persisted
                types) no matching non-blacklisted row.
        """
        payload = decode_token(token, token_type, self.settings.secret_key)
        if payload is None:
            raise Unauthorized("Token not found")
        if token_type is TokenType.ACCESS:
            return payload
        record = self.token_store.find_active(token, token_type, user_id=payload["sub"])
        if record is None:
            raise Unauthorized("Token not found")
        return record

    def consume_token(self, token: str, token_type: TokenType) -> Token:
        """Verify and delete a persisted token in one step.

        The delete is a single DELETE ... RETURNING, so a token can be
        consumed at most once even under concurrent requests.

        Raises:
            Unauthorized: verification failed or the row was already gone.
        """
        payload = decode_token(token, token_type, self.settings.secret_key)
        if payload is None:
            raise Unauthorized("Token not found")
        record = self.token_store.consume(token, token_type, user_id=payload["sub"])
        if record is None:
            raise Unauthorized("Token not found")
        return record

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def generate_auth_tokens(self, user: User) -> AuthTokens:
        """Issue a stateless access token and a persisted refresh token."""
        now = _now_seconds()
        access_expires = now + timedelta(minutes=self.settings.jwt_access_expiration_minutes)
        access_token = self.generate_token(user.id, access_expires, TokenType.ACCESS)

        refresh_expires = now + timedelta(days=self.settings.jwt_refresh_expiration_days)
        refresh_token = self.generate_token(user.id, refresh_expires, TokenType.REFRESH)
        self.save_token(refresh_token, user.id, refresh_expires, TokenType.REFRESH)

        return AuthTokens(
            access=IssuedToken(token=access_token, expires=access_expires.isoformat()),
            refresh=IssuedToken(token=refresh_token, expires=refresh_expires.isoformat()),
        )

    def generate_reset_password_token(self, email: str) -> str:
        """Issue a reset-password token for the account owning email.

        Raises:
            NotFound: no user with this email.
        """
        user = self.user_store.get_by_email(email.strip().lower())
        if user is None:
            raise NotFound("No users found with this email")
        expires = _now_seconds() + timedelta(minutes=self.settings.jwt_reset_password_expiration_minutes)
        token = self.generate_token(user.id, expires, TokenType.RESET_PASSWORD)
        self.save_token(token, user.id, expires, TokenType.RESET_PASSWORD)
        return token

    def generate_verify_email_token(self, user: User) -> str:
        expires = _now_seconds() + timedelta(minutes=self.settings.jwt_verify_email_expiration_minutes)
        token = self.generate_token(user.id, expires, TokenType.VERIFY_EMAIL)
        self.save_token(token, user.id, expires, TokenType.VERIFY_EMAIL)
        return token


class AuthService:
    """Login, logout, refresh rotation, password reset and email verification."""

    def __init__(self, users: UserService, tokens: TokenManager) -> None:
        self.users = users
        self.tokens = tokens

    def login_with_email_and_password(self, email: str, password: str) -> User:
        """Authenticate a local login with timing equalization.

        bcrypt runs whether or not the email exists, so response time does not
        reveal which emails are registered. Wrong email and wrong password
        produce the same error.
        """
        user = self.users.get_user_by_email(email)
        if user is None:
            verify_password(password, DUMMY_HASH)
            logger.info("Login failed: unknown email")
            raise Unauthorized("Incorrect email or password")
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed for user %s: bad password", user.id)
            raise Unauthorized("Incorrect email or password")
        return user

    def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token.

        Raises:
            NotFound: the token is unknown, already used, or blacklisted.
        """
        try:
            record = self.tokens.consume_token(refresh_token, TokenType.REFRESH)
        except Unauthorized as exc:
            raise NotFound("Not found") from exc
        logger.info("User %s logged out", record.user_id)

    def refresh_auth(self, refresh_token: str) -> AuthTokens:
        """Rotate a refresh token: consume it, then issue a fresh pair.

        Raises:
            Unauthorized: on any failure. No pair is issued unless the old
                refresh token was consumed by this call.
        """
        try:
            record = self.tokens.consume_token(refresh_token, TokenType.REFRESH)
            user = self.users.get_user_by_id(record.user_id)
            if user is None:
                raise Unauthorized()
        except ApiError as exc:
            raise Unauthorized("Please authenticate") from exc
        logger.info("Rotated refresh token for user %s", user.id)
        return self.tokens.generate_auth_tokens(user)

    def reset_password(self, reset_password_token: str, new_password: str) -> None:
        """Set a new password using a single-use reset token.

        The password is checked before the token is consumed, so a rejected
        password leaves the token usable.

        Raises:
            ValidationFailure: new_password breaks the password policy.
            Unauthorized: the token is invalid, expired or already used.
        """
        try:
            check_password_rules(new_password)
        except ValueError as exc:
            raise ValidationFailure(str(exc)) from exc
        try:
            record = self.tokens.consume_token(reset_password_token, TokenType.RESET_PASSWORD)
            user = self.users.get_user_by_id(record.user_id)
            if user is None:
                raise Unauthorized()
            self.users.update_user_by_id(user.id, password=new_password)
            self.tokens.token_store.delete_for_user(user.id, TokenType.RESET_PASSWORD)
        except ApiError as exc:
            raise Unauthorized("Password reset failed") from exc
        logger.info("Password reset for user %s", user.id)

    def verify_email(self, verify_email_token: str) -> None:
        """Mark the token owner's email as verified. The token is single-use.

        Raises:
            Unauthorized: the token is invalid, expired or already used.
        """
        try:
            record = self.tokens.consume_token(verify_email_token, TokenType.VERIFY_EMAIL)
            user = self.users.get_user_by_id(record.user_id)
            if user is None:
                raise Unauthorized()
            self.tokens.token_store.delete_for_user(user.id, TokenType.VERIFY_EMAIL)
            self.users.update_user_by_id(user.id, is_email_verified=True)
        except ApiError as exc:
            raise Unauthorized("Email verification failed") from exc
        logger.info("Email verified for user %s", user.id)
