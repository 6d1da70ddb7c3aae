"""
auth/roles.py -- Closed set of roles and the rights each one grants.

Roles are an Enum rather than free-form strings so an unknown role cannot be
written to the database or checked against by accident. Adding a role means
adding an enum member and an entry in _ROLE_RIGHTS.

Layer rule: no imports from anything in this project.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Right(str, Enum):
    GET_USERS = "get_users"
    MANAGE_USERS = "manage_users"


_ROLE_RIGHTS: dict[Role, frozenset[Right]] = {
    Role.USER: frozenset(),
    Role.ADMIN: frozenset({Right.GET_USERS, Right.MANAGE_USERS}),
}

ROLE_VALUES: tuple[str, ...] = tuple(r.value for r in Role)


def rights_for(role: Role) -> frozenset[Right]:
    """Return the rights granted to a role."""
    return _ROLE_RIGHTS[role]


def has_rights(role: Role, required: set[Right] | frozenset[Right]) -> bool:
    """Return True if the role grants every right in `required`."""
    return set(required).issubset(_ROLE_RIGHTS[role])
