"""
auth/users.py -- User management service.

The write path for users lives here: email normalization, the password
policy, hashing, and the duplicate-email check all happen as explicit steps
before UserStore sees the data. The store never hashes or normalizes anything
on its own.

Layer rule: no imports from api/ or mail/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.roles import Role
from auth.store import UserStore
from auth.tokens import check_password_rules, hash_password
from core.errors import Conflict, NotFound, ValidationFailure
from db.paginate import Page

logger = logging.getLogger("userauth.users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _hashed(password: str) -> str:
    """Apply the password policy, then hash. Raises ValidationFailure on a weak password."""
    try:
        check_password_rules(password)
    except ValueError as exc:
        raise ValidationFailure(str(exc)) from exc
    return hash_password(password)


class UserService:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def create_user(self, name: str, email: str, password: str, role: Role | str = Role.USER) -> User:
        """Create a user and return the stored record.

        Raises:
            ValidationFailure: empty name, unknown role or weak password.
            Conflict: the email is already taken.
        """
        if not name or not name.strip():
            raise ValidationFailure("name must not be empty")
        try:
            role = Role(role)
        except ValueError as exc:
            raise ValidationFailure(f"Unknown role: {role}") from exc
        email = normalize_email(email)
        if self.store.is_email_taken(email):
            raise Conflict("Email already taken")
        user = User(name=name.strip(), email=email, hashed_password=_hashed(password), role=role)
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same email.
            raise Conflict("Email already taken") from exc
        logger.info("Created user %s (role=%s)", user_id, role.value)
        return self.store.get_by_id(user_id)

    def query_users(self, filters: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None) -> Page:
        return self.store.query_users(filters, options)

    def get_user_by_id(self, user_id: str) -> User | None:
        return self.store.get_by_id(user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.store.get_by_email(normalize_email(email))

    def update_user_by_id(self, user_id: str, **fields) -> User:
        """Update name, email, password, role and/or is_email_verified.

        Only keys present in fields are changed. A new password is run
        through the policy and hashed here, before the store is called.

        Raises:
            NotFound: no user with user_id.
            Conflict: the new email belongs to another user.
            ValidationFailure: weak password, empty name or unknown role.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")

        updates: dict[str, Any] = {}
        if fields.get("name") is not None:
            if not fields["name"].strip():
                raise ValidationFailure("name must not be empty")
            updates["name"] = fields["name"].strip()
        if fields.get("email") is not None:
            email = normalize_email(fields["email"])
            if self.store.is_email_taken(email, exclude_user_id=user_id):
                raise Conflict("Email already taken")
            updates["email"] = email
        if fields.get("password") is not None:
            updates["hashed_password"] = _hashed(fields["password"])
        if fields.get("role") is not None:
            try:
                updates["role"] = Role(fields["role"])
            except ValueError as exc:
                raise ValidationFailure(f"Unknown role: {fields['role']}") from exc
        if fields.get("is_email_verified") is not None:
            updates["is_email_verified"] = bool(fields["is_email_verified"])

        if updates:
            try:
                self.store.update_user(user_id, **updates)
            except IntegrityError as exc:
                raise Conflict("Email already taken") from exc
        return self.store.get_by_id(user_id)

    def delete_user_by_id(self, user_id: str) -> User:
        """Delete a user (and, by cascade, their tokens). Returns the deleted record.

        Raises:
            NotFound: no user with user_id.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        self.store.delete_user(user_id)
        logger.info("Deleted user %s", user_id)
        return user
