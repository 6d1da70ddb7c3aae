"""
tests/test_database.py -- Unit tests for db/database.py and the token store.

Covers:
  - create_all is idempotent and ping succeeds on a live engine
  - SQLite connections enforce foreign keys
  - pool arguments are applied only to non-SQLite URLs
  - TokenStore.consume deletes exactly once, also under two concurrent threads
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from auth.models import Token, TokenType, User
from auth.store import TokenStore, UserStore
from db.database import Database
from db.schema import tokens as tokens_table


def test_create_all_is_idempotent(database) -> None:
    database.create_all()
    assert database.ping() is True


def test_foreign_keys_are_enforced(database) -> None:
    """A token row pointing at a missing user is rejected."""
    with database.connect() as conn, pytest.raises(IntegrityError):
        conn.execute(
            tokens_table.insert().values(
                id="t-1",
                token="x",
                user_id="missing-user",
                type="refresh",
                expires="2099-01-01T00:00:00+00:00",
                created_at="2024-01-01T00:00:00+00:00",
                updated_at="2024-01-01T00:00:00+00:00",
            )
        )


def test_foreign_keys_pragma_is_on(database) -> None:
    with database.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar_one() == 1


def test_pool_arguments_only_for_server_databases() -> None:
    with patch("db.database.create_engine") as create_engine:
        Database("postgresql+psycopg://u:p@localhost/db", pool_size=7, pool_timeout=12)
    kwargs = create_engine.call_args.kwargs
    assert kwargs["pool_size"] == 7
    assert kwargs["max_overflow"] == 0
    assert kwargs["pool_timeout"] == 12

    with patch("db.database.create_engine") as create_engine, patch("db.database.event.listen"):
        Database("sqlite://")
    kwargs = create_engine.call_args.kwargs
    assert "pool_size" not in kwargs
    assert kwargs["connect_args"] == {"check_same_thread": False}


def test_consume_deletes_once(token_store, seeded_users) -> None:
    alice = seeded_users["alice"]
    expires = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    saved = token_store.create_token(Token(token="tok", user_id=alice.id, type=TokenType.REFRESH, expires=expires))

    first = token_store.consume("tok", TokenType.REFRESH, user_id=alice.id)
    assert first is not None and first.id == saved.id
    assert token_store.consume("tok", TokenType.REFRESH, user_id=alice.id) is None


def test_concurrent_consume_has_one_winner(tmp_path) -> None:
    """Two threads consuming the same token: exactly one gets the row."""
    database = Database(f"sqlite:///{tmp_path / 'race.db'}")
    database.create_all()
    try:
        user_id = UserStore(database).create_user(User(name="Racer", email="racer@example.com", hashed_password="x"))
        store = TokenStore(database)
        expires = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        store.create_token(Token(token="shared", user_id=user_id, type=TokenType.REFRESH, expires=expires))

        barrier = threading.Barrier(2)

        def consume():
            barrier.wait()
            return store.consume("shared", TokenType.REFRESH, user_id=user_id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = [f.result() for f in [pool.submit(consume) for _ in range(2)]]

        assert sum(r is not None for r in results) == 1
        assert store.list_for_user(user_id) == []
    finally:
        database.close()


def test_delete_for_user_only_touches_one_type(token_store, seeded_users) -> None:
    alice = seeded_users["alice"]
    expires = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    for value, kind in (("a", TokenType.REFRESH), ("b", TokenType.RESET_PASSWORD), ("c", TokenType.RESET_PASSWORD)):
        token_store.create_token(Token(token=value, user_id=alice.id, type=kind, expires=expires))

    assert token_store.delete_for_user(alice.id, TokenType.RESET_PASSWORD) == 2
    assert [t.token for t in token_store.list_for_user(alice.id)] == ["a"]
