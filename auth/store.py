"""
auth/store.py -- SQLAlchemy Core persistence layer for users and tokens.

Pattern: Repository + Data Mapper. UserStore and TokenStore are the
repositories; _row_to_user / _row_to_token are the mappers. Services never
touch SQL directly.

Both stores receive the shared Database handle in their constructor; neither
creates an engine.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Passwords arrive here already hashed -- hashing is an explicit step in
  UserService, not a side effect of writing a row.

Single-use tokens:
  TokenStore.consume() deletes the matching row with DELETE ... RETURNING and
  hands back what it deleted. Lookup and delete are one statement, so two
  concurrent requests presenting the same refresh token cannot both win: the
  second DELETE matches nothing and the caller treats that as unauthorized.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from auth.models import Token, TokenType, User
from auth.roles import Role
from db.database import Database
from db.paginate import Page, paginate
from db.schema import tokens as _tokens
from db.schema import users as _users

# Columns UserStore.update_user() accepts. Anything else is a programming error.
_USER_MUTABLE_FIELDS: frozenset[str] = frozenset({"name", "email", "hashed_password", "role", "is_email_verified"})

# Columns a user listing may be ordered by. The password hash is not one of them.
USER_SORT_FIELDS: frozenset[str] = frozenset(
    {"name", "email", "role", "is_email_verified", "created_at", "updated_at"}
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(database)
        user_id = store.create_user(User(name="Ada", email="ada@example.com", hashed_password=h))
        user = store.get_by_email("ada@example.com")
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email is already taken;
        UserService checks first, the UNIQUE constraint catches races.
        """
        user_id = str(uuid.uuid4())
        now = _now_iso()
        with self.database.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=user.email,
                    password=user.hashed_password,
                    role=Role(user.role).value,
                    is_email_verified=user.is_email_verified,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.database.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact (already normalized) email. Returns None if not found."""
        with self.database.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def is_email_taken(self, email: str, exclude_user_id: str | None = None) -> bool:
        """Return True if another user already owns email."""
        query = _users.select().where(_users.c.email == email)
        if exclude_user_id is not None:
            query = query.where(_users.c.id != exclude_user_id)
        with self.database.connect() as conn:
            row = conn.execute(query.limit(1)).fetchone()
        return row is not None

    def query_users(self, filters: Mapping[str, Any] | None, options: Mapping[str, Any] | None) -> Page[User]:
        """Paginated listing; see db/paginate.py for filter and option semantics."""
        return paginate(self.database, _users, filters, options, mapper=_row_to_user, sortable=USER_SORT_FIELDS)

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: name, email, hashed_password, role, is_email_verified.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _USER_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        values: dict[str, Any] = dict(fields)
        if "hashed_password" in values:
            values["password"] = values.pop("hashed_password")
        if "role" in values:
            values["role"] = Role(values["role"]).value
        values["updated_at"] = _now_iso()
        with self.database.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user. Owned tokens go with it (ON DELETE CASCADE).

        Returns True if deleted, False if not found.
        """
        with self.database.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for persisted (revocable) tokens. Access tokens never land here."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def create_token(self, token: Token) -> Token:
        """Insert a token row and return it with id and timestamps filled in."""
        token_id = str(uuid.uuid4())
        now = _now_iso()
        with self.database.connect() as conn:
            conn.execute(
                _tokens.insert().values(
                    id=token_id,
                    token=token.token,
                    user_id=token.user_id,
                    type=TokenType(token.type).value,
                    expires=token.expires,
                    blacklisted=token.blacklisted,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return Token(
            id=token_id,
            token=token.token,
            user_id=token.user_id,
            type=TokenType(token.type),
            expires=token.expires,
            blacklisted=token.blacklisted,
            created_at=now,
            updated_at=now,
        )

    def find_active(self, token: str, token_type: TokenType, user_id: str | None = None) -> Token | None:
        """Return the non-blacklisted row for this token string and type, if any."""
        query = _tokens.select().where(
            (_tokens.c.token == token) & (_tokens.c.type == token_type.value) & (_tokens.c.blacklisted.is_(False))
        )
        if user_id is not None:
            query = query.where(_tokens.c.user_id == user_id)
        with self.database.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_token(row) if row is not None else None

    def consume(self, token: str, token_type: TokenType, user_id: str | None = None) -> Token | None:
        """Atomically delete the non-blacklisted row for this token and return it.

        Returns None when no such row exists -- never issued, already
        consumed, blacklisted, or lost to a concurrent consumer.
        """
        stmt = _tokens.delete().where(
            (_tokens.c.token == token) & (_tokens.c.type == token_type.value) & (_tokens.c.blacklisted.is_(False))
        )
        if user_id is not None:
            stmt = stmt.where(_tokens.c.user_id == user_id)
        with self.database.connect() as conn:
            row = conn.execute(stmt.returning(*_tokens.c)).first()
            conn.commit()
        return _row_to_token(row) if row is not None else None

    def delete_for_user(self, user_id: str, token_type: TokenType) -> int:
        """Delete every token of one type owned by user_id. Returns rows removed."""
        with self.database.connect() as conn:
            result = conn.execute(
                _tokens.delete().where((_tokens.c.user_id == user_id) & (_tokens.c.type == token_type.value))
            )
            conn.commit()
        return result.rowcount

    def list_for_user(self, user_id: str) -> list[Token]:
        """Return all token rows owned by user_id, oldest first."""
        with self.database.connect() as conn:
            rows = conn.execute(
                _tokens.select().where(_tokens.c.user_id == user_id).order_by(_tokens.c.created_at)
            ).fetchall()
        return [_row_to_token(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.password,
        role=Role(row.role),
        is_email_verified=bool(row.is_email_verified),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_token(row) -> Token:
    return Token(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        type=TokenType(row.type),
        expires=row.expires,
        blacklisted=bool(row.blacklisted),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
