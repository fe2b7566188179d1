"""
auth/protocols.py -- Structural interfaces consumed by the auth services.

IdentityDirectory and SessionManager depend on these protocols, not on the
SQLAlchemy stores, so any object with the same methods can be swapped in
(in-memory fakes in tests, a different database backend in production).
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth.models import Session, User


class PasswordHasher(Protocol):
    """Hash and verify passwords. Implementations never log plaintext."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, digest: str) -> bool: ...


class UserRepository(Protocol):
    def create_user(self, user: User) -> str: ...

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def list_users(self) -> list[User]: ...

    def update_user(self, user_id: str, **fields) -> bool: ...

    def delete_user(self, user_id: str) -> bool:
        """Delete the user and all of its sessions atomically."""
        ...


class SessionRepository(Protocol):
    """Persistent record of active refresh sessions keyed by token value."""

    def create(self, session: Session) -> str: ...

    def find_by_token(self, token: str) -> Session | None: ...

    def find_by_token_with_user(self, token: str) -> tuple[Session, User] | None: ...

    def update(self, session_id: str, **fields) -> bool: ...

    def rotate(self, session_id: str, current_token: str, new_token: str, expires_at: datetime) -> bool:
        """Replace the token only if the row still holds current_token.

        Returns False when another request already rotated or deleted the row.
        """
        ...

    def delete_by_token(self, token: str) -> int: ...

    def delete_all_for_user(self, user_id: str) -> int: ...

    def list_for_user(self, user_id: str) -> list[Session]: ...
