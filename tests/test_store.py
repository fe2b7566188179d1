"""Unit tests for auth/store.py -- UserStore and SessionStore.

Covers:
- Email uniqueness enforced by the users table
- Session lookup by literal token, with and without the owning user
- Conditional rotation: only the holder of the current token wins
- delete_by_token removes only matching rows; delete_all_for_user is scoped
- list_for_user orders newest first
- ON DELETE CASCADE from users to sessions
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from auth.models import Session, User
from auth.store import SessionStore, UserStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _future(days: int = 7) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def _make_user(store: UserStore, email: str = "a@x.com") -> str:
    return store.create_user(User(email=email, name="A", hashed_password="digest"))


def _make_session(store: SessionStore, user_id: str, token: str, **kwargs) -> str:
    return store.create(Session(user_id=user_id, refresh_token=token, expires_at=_future(), **kwargs))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUserStore:
    def test_create_and_fetch(self, user_store: UserStore) -> None:
        uid = _make_user(user_store)
        by_id = user_store.get_by_id(uid)
        by_email = user_store.get_by_email("a@x.com")
        assert by_id is not None and by_email is not None
        assert by_id.id == by_email.id == uid
        assert by_id.role == "CLIENT"
        assert by_id.created_at and by_id.updated_at

    def test_duplicate_email_rejected(self, user_store: UserStore) -> None:
        _make_user(user_store)
        with pytest.raises(IntegrityError):
            _make_user(user_store)

    def test_update_user(self, user_store: UserStore) -> None:
        uid = _make_user(user_store)
        assert user_store.update_user(uid, name="Renamed", role="ADMIN") is True
        user = user_store.get_by_id(uid)
        assert user.name == "Renamed"
        assert user.role == "ADMIN"
        assert user_store.count_admins() == 1

    def test_update_missing_user(self, user_store: UserStore) -> None:
        assert user_store.update_user("missing", name="x") is False

    def test_delete_user(self, user_store: UserStore) -> None:
        uid = _make_user(user_store)
        assert user_store.delete_user(uid) is True
        assert user_store.get_by_id(uid) is None
        assert user_store.delete_user(uid) is False


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestSessionStore:
    def test_create_and_find_by_token(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        sid = _make_session(session_store, uid, "tok-1", user_agent="pytest", ip_address="10.0.0.1")
        found = session_store.find_by_token("tok-1")
        assert found is not None
        assert found.id == sid
        assert found.user_agent == "pytest"
        assert found.ip_address == "10.0.0.1"
        assert found.expires_at.tzinfo is not None
        assert session_store.find_by_token("tok-unknown") is None

    def test_find_by_token_with_user(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        _make_session(session_store, uid, "tok-1")
        found = session_store.find_by_token_with_user("tok-1")
        assert found is not None
        session, user = found
        assert session.user_id == uid
        assert user.id == uid
        assert user.email == "a@x.com"

    def test_rotate_replaces_token_in_place(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        sid = _make_session(session_store, uid, "tok-1")
        new_expiry = _future(days=10)
        assert session_store.rotate(sid, current_token="tok-1", new_token="tok-2", expires_at=new_expiry) is True
        assert session_store.find_by_token("tok-1") is None
        rotated = session_store.find_by_token("tok-2")
        assert rotated.id == sid
        assert abs(rotated.expires_at - new_expiry) < timedelta(seconds=1)
        assert len(session_store.list_for_user(uid)) == 1

    def test_second_rotation_with_stale_token_loses(self, user_store: UserStore, session_store: SessionStore) -> None:
        """Two requests presenting the same token: only the first UPDATE matches."""
        uid = _make_user(user_store)
        sid = _make_session(session_store, uid, "tok-1")
        assert session_store.rotate(sid, "tok-1", "tok-2", _future()) is True
        assert session_store.rotate(sid, "tok-1", "tok-3", _future()) is False
        assert session_store.find_by_token("tok-2") is not None
        assert session_store.find_by_token("tok-3") is None

    def test_delete_by_token_only_removes_match(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        _make_session(session_store, uid, "tok-1")
        _make_session(session_store, uid, "tok-2")
        assert session_store.delete_by_token("tok-1") == 1
        assert session_store.delete_by_token("tok-1") == 0
        remaining = session_store.list_for_user(uid)
        assert [s.refresh_token for s in remaining] == ["tok-2"]

    def test_delete_all_for_user_is_scoped(self, user_store: UserStore, session_store: SessionStore) -> None:
        alice = _make_user(user_store, "alice@x.com")
        bob = _make_user(user_store, "bob@x.com")
        _make_session(session_store, alice, "a-1")
        _make_session(session_store, alice, "a-2")
        _make_session(session_store, bob, "b-1")
        assert session_store.delete_all_for_user(alice) == 2
        assert session_store.list_for_user(alice) == []
        assert len(session_store.list_for_user(bob)) == 1

    def test_list_for_user_newest_first(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        older = _make_session(session_store, uid, "tok-old")
        newer = _make_session(session_store, uid, "tok-new")
        session_store.update(older, created_at="2026-01-01T00:00:00+00:00")
        session_store.update(newer, created_at="2026-02-01T00:00:00+00:00")
        assert [s.id for s in session_store.list_for_user(uid)] == [newer, older]

    def test_update_expires_at_accepts_datetime(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        sid = _make_session(session_store, uid, "tok-1")
        past = datetime.now(timezone.utc) - timedelta(days=1)
        assert session_store.update(sid, expires_at=past) is True
        assert session_store.find_by_token("tok-1").expires_at < datetime.now(timezone.utc)

    def test_user_delete_cascades_to_sessions(self, user_store: UserStore, session_store: SessionStore) -> None:
        uid = _make_user(user_store)
        _make_session(session_store, uid, "tok-1")
        user_store.delete_user(uid)
        assert session_store.find_by_token("tok-1") is None

    def test_failed_user_delete_keeps_sessions(
        self, engine, user_store: UserStore, session_store: SessionStore
    ) -> None:
        """Sessions and user are removed in one transaction: if the user DELETE fails, nothing is removed."""
        uid = _make_user(user_store)
        _make_session(session_store, uid, "tok-1")

        def fail_user_delete(conn, cursor, statement, parameters, context, executemany):
            if statement.startswith("DELETE FROM users"):
                raise RuntimeError("simulated failure")

        event.listen(engine, "before_cursor_execute", fail_user_delete)
        try:
            with pytest.raises(Exception):
                user_store.delete_user(uid)
        finally:
            event.remove(engine, "before_cursor_execute", fail_user_delete)

        assert user_store.get_by_id(uid) is not None
        assert session_store.find_by_token("tok-1") is not None

    def test_session_requires_existing_user(self, session_store: SessionStore) -> None:
        with pytest.raises(IntegrityError):
            _make_session(session_store, "no-such-user", "tok-1")
