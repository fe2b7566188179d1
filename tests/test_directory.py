"""Unit tests for auth/directory.py -- the identity directory.

Covers:
- register() always assigns CLIENT; create_user() honours the given role
- duplicate email rejected on create and on update
- authenticate() for good, wrong and unknown credentials
- password re-hash on update, and session revocation when it changes
- role cannot change through update_profile()
- delete_user() removes the account and all its sessions
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.directory import IdentityDirectory
from auth.errors import DuplicateEmail, NotFound
from auth.models import Session
from auth.roles import Role
from auth.store import SessionStore, UserStore


def _open_session(session_store: SessionStore, user_id: str, token: str) -> None:
    session_store.create(
        Session(user_id=user_id, refresh_token=token, expires_at=datetime.now(timezone.utc) + timedelta(days=7))
    )


class TestCreate:
    def test_register_defaults_to_client(self, directory: IdentityDirectory) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        assert user.role == Role.CLIENT.value
        assert user.email == "a@x.com"
        assert not hasattr(user, "hashed_password")

    def test_register_stores_digest_not_plaintext(self, directory: IdentityDirectory, user_store: UserStore) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        stored = user_store.get_by_id(user.id)
        assert stored.hashed_password
        assert stored.hashed_password != "secret1"

    def test_register_duplicate_email(self, directory: IdentityDirectory) -> None:
        directory.register("a@x.com", "secret1", "A")
        with pytest.raises(DuplicateEmail) as exc_info:
            directory.register("a@x.com", "other12", "B")
        assert exc_info.value.code == "email_taken"

    def test_admin_create_with_role(self, directory: IdentityDirectory) -> None:
        user = directory.create_user("boss@x.com", "secret1", "Boss", Role.ADMIN)
        assert user.role == "ADMIN"

    def test_admin_create_duplicate_email(self, directory: IdentityDirectory) -> None:
        directory.register("a@x.com", "secret1", "A")
        with pytest.raises(DuplicateEmail):
            directory.create_user("a@x.com", "secret1", "A2", Role.ADMIN)


class TestLookup:
    def test_find_by_id_unknown(self, directory: IdentityDirectory) -> None:
        with pytest.raises(NotFound):
            directory.find_by_id("missing")

    def test_list_users(self, directory: IdentityDirectory) -> None:
        directory.register("a@x.com", "secret1", "A")
        directory.register("b@x.com", "secret1", "B")
        assert {u.email for u in directory.list_users()} == {"a@x.com", "b@x.com"}


class TestAuthenticate:
    def test_correct_password(self, directory: IdentityDirectory) -> None:
        created = directory.register("a@x.com", "secret1", "A")
        user = directory.authenticate("a@x.com", "secret1")
        assert user is not None and user.id == created.id

    def test_wrong_password(self, directory: IdentityDirectory) -> None:
        directory.register("a@x.com", "secret1", "A")
        assert directory.authenticate("a@x.com", "nope") is None

    def test_unknown_email_still_runs_hasher(self, user_store: UserStore, session_store: SessionStore) -> None:
        calls: list[str] = []

        class CountingHasher:
            def hash(self, password: str) -> str:
                return "h:" + password

            def verify(self, password: str, digest: str) -> bool:
                calls.append(digest)
                return digest == "h:" + password

        directory = IdentityDirectory(user_store, session_store, CountingHasher())
        assert directory.authenticate("ghost@x.com", "secret1") is None
        assert len(calls) == 1


class TestUpdate:
    def test_update_profile_fields(self, directory: IdentityDirectory) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        updated = directory.update_profile(user.id, name="Alice", email="alice@x.com")
        assert updated.name == "Alice"
        assert updated.email == "alice@x.com"
        assert updated.role == "CLIENT"

    def test_update_profile_has_no_role_parameter(self, directory: IdentityDirectory) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        with pytest.raises(TypeError):
            directory.update_profile(user.id, role=Role.ADMIN)  # type: ignore[call-arg]

    def test_update_to_duplicate_email(self, directory: IdentityDirectory) -> None:
        directory.register("a@x.com", "secret1", "A")
        b = directory.register("b@x.com", "secret1", "B")
        with pytest.raises(DuplicateEmail):
            directory.update_user(b.id, email="a@x.com")

    def test_update_to_own_email_is_allowed(self, directory: IdentityDirectory) -> None:
        a = directory.register("a@x.com", "secret1", "A")
        assert directory.update_user(a.id, email="a@x.com").email == "a@x.com"

    def test_admin_update_role(self, directory: IdentityDirectory) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        assert directory.update_user(user.id, role=Role.ADMIN).role == "ADMIN"

    def test_password_change_rehashes_and_revokes_sessions(
        self, directory: IdentityDirectory, session_store: SessionStore
    ) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        _open_session(session_store, user.id, "tok-1")
        directory.update_profile(user.id, password="newsecret")
        assert directory.authenticate("a@x.com", "secret1") is None
        assert directory.authenticate("a@x.com", "newsecret") is not None
        assert session_store.list_for_user(user.id) == []

    def test_name_change_keeps_sessions(self, directory: IdentityDirectory, session_store: SessionStore) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        _open_session(session_store, user.id, "tok-1")
        directory.update_profile(user.id, name="Alice")
        assert len(session_store.list_for_user(user.id)) == 1

    def test_update_unknown_user(self, directory: IdentityDirectory) -> None:
        with pytest.raises(NotFound):
            directory.update_user("missing", name="x")


class TestDelete:
    def test_delete_cascades_sessions(self, directory: IdentityDirectory, session_store: SessionStore) -> None:
        user = directory.register("a@x.com", "secret1", "A")
        _open_session(session_store, user.id, "tok-1")
        _open_session(session_store, user.id, "tok-2")
        directory.delete_user(user.id)
        assert session_store.list_for_user(user.id) == []
        with pytest.raises(NotFound):
            directory.find_by_id(user.id)

    def test_delete_unknown_user(self, directory: IdentityDirectory) -> None:
        with pytest.raises(NotFound):
            directory.delete_user("missing")
