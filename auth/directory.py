"""
auth/directory.py -- Identity Directory: user lookup, creation, update, deletion.

The directory binds sessions to identities for the SessionManager and owns
every rule about account data:

  - email uniqueness is checked before the write, and an IntegrityError from
    a concurrent insert is mapped to the same DuplicateEmail error
  - passwords are hashed on create and re-hashed only when a new one is
    supplied; a password change revokes every session of the account
  - the self-service path (update_profile) can never change a role
  - deleting an account removes its sessions in the same transaction

Timing equalization: authenticate() always runs the hasher, against a dummy
digest when the email is unknown, so response time does not reveal whether an
account exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmail, NotFound
from auth.models import PublicUser, User
from auth.protocols import PasswordHasher, SessionRepository, UserRepository
from auth.roles import Role

logger = logging.getLogger("sessionauth.auth.directory")

_DUMMY_PASSWORD = "sessionauth_timing_dummy"


class IdentityDirectory:
    def __init__(self, users: UserRepository, sessions: SessionRepository, hasher: PasswordHasher) -> None:
        self.users = users
        self.sessions = sessions
        self.hasher = hasher
        # Computed once so the first failed login is not measurably slower.
        self._dummy_digest = hasher.hash(_DUMMY_PASSWORD)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        return self.users.get_by_email(email)

    def find_by_id(self, user_id: str) -> PublicUser:
        return self._require(user_id).public()

    def list_users(self) -> list[PublicUser]:
        return [u.public() for u in self.users.list_users()]

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user if email and password match, None otherwise.

        Unknown email and wrong password are indistinguishable to the caller,
        both in return value and in time spent.
        """
        user = self.users.get_by_email(email)
        if user is None:
            self.hasher.verify(password, self._dummy_digest)
            return None
        if not self.hasher.verify(password, user.hashed_password):
            return None
        return user

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str) -> PublicUser:
        """Self-registration. The role is always CLIENT regardless of input."""
        return self._create(email, password, name, Role.CLIENT)

    def create_user(self, email: str, password: str, name: str, role: Role | str) -> PublicUser:
        """Admin-created account with a caller-specified role."""
        return self._create(email, password, name, Role(role))

    def _create(self, email: str, password: str, name: str, role: Role) -> PublicUser:
        if self.users.get_by_email(email) is not None:
            raise DuplicateEmail()
        user = User(email=email, name=name, role=role.value, hashed_password=self.hasher.hash(password))
        try:
            user_id = self.users.create_user(user)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        logger.info("User created id=%s role=%s", user_id, role.value)
        return self._require(user_id).public()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_profile(
        self,
        user_id: str,
        *,
        email: str | None = None,
        name: str | None = None,
        password: str | None = None,
    ) -> PublicUser:
        """Self-service update. Role is not a parameter, so it cannot change here."""
        return self._update(user_id, email=email, name=name, password=password, role=None)

    def update_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        name: str | None = None,
        password: str | None = None,
        role: Role | str | None = None,
    ) -> PublicUser:
        """Admin update. Any subset of fields may be supplied."""
        return self._update(user_id, email=email, name=name, password=password, role=role)

    def _update(
        self,
        user_id: str,
        *,
        email: str | None,
        name: str | None,
        password: str | None,
        role: Role | str | None,
    ) -> PublicUser:
        user = self._require(user_id)

        fields: dict = {}
        if email is not None and email != user.email:
            if self.users.get_by_email(email) is not None:
                raise DuplicateEmail()
            fields["email"] = email
        if name is not None:
            fields["name"] = name
        if role is not None:
            fields["role"] = Role(role).value
        if password:
            fields["hashed_password"] = self.hasher.hash(password)

        if fields:
            try:
                self.users.update_user(user_id, **fields)
            except IntegrityError as exc:
                raise DuplicateEmail() from exc

        if "hashed_password" in fields:
            revoked = self.sessions.delete_all_for_user(user_id)
            logger.info("Password changed for user id=%s, revoked %d session(s)", user_id, revoked)

        return self._require(user_id).public()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_user(self, user_id: str) -> None:
        """Delete the account and every session it owns."""
        self._require(user_id)
        self.users.delete_user(user_id)
        logger.info("User deleted id=%s", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFound()
        return user
