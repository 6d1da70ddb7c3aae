"""
db/schema.py -- SQLAlchemy Core table definitions.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py remain the
authoritative domain representation. Stores translate rows into those
dataclasses with their _row_to_* mappers.

Timestamps are ISO 8601 UTC strings. They sort lexicographically in the same
order as chronologically, which is what the default created_at ordering in
db/paginate.py relies on.

role and type are declared as Enum columns. On PostgreSQL they become native
enum types, whose ORDER BY follows declaration order rather than the
alphabet -- paginate() casts them to text before sorting.
"""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Index, MetaData, String, Table, Text, false

from auth.models import PERSISTED_TOKEN_TYPES
from auth.roles import ROLE_VALUES, Role

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),  # bcrypt hash, never plaintext
    Column("role", Enum(*ROLE_VALUES, name="user_role"), nullable=False, server_default=Role.USER.value),
    Column("is_email_verified", Boolean, nullable=False, server_default=false()),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

tokens = Table(
    "tokens",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("token", Text, nullable=False),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", Enum(*(t.value for t in PERSISTED_TOKEN_TYPES), name="token_type"), nullable=False),
    Column("expires", String(32), nullable=False),
    Column("blacklisted", Boolean, nullable=False, server_default=false()),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

Index("tokens_token_index", tokens.c.token)
Index("tokens_user_id_index", tokens.c.user_id)
