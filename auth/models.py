"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; the only behaviour here is projecting an entity down to
the shape that is safe to hand to the boundary layer.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from auth.roles import Role


@dataclass
class User:
    """Represents an account (identity) in SessionAuth.

    hashed_password never leaves the service layer. Anything returned to the
    boundary goes through public() first.

    id is None before the record is written to the database.
    """

    email: str
    name: str
    role: str = Role.CLIENT.value
    hashed_password: str = ""
    id: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    def public(self) -> PublicUser:
        return PublicUser(
            id=self.id or "",
            email=self.email,
            name=self.name,
            role=self.role,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def payload(self) -> CredentialPayload:
        return CredentialPayload(user_id=self.id or "", email=self.email, role=self.role)


@dataclass(frozen=True)
class PublicUser:
    """Password-free projection of a User."""

    id: str
    email: str
    name: str
    role: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class CredentialPayload:
    """The minimal identity projection embedded in a signed token."""

    user_id: str
    email: str
    role: str


@dataclass
class Session:
    """One active refresh-token grant.

    refresh_token is the lookup key and is replaced in place on every refresh
    (rotation). expires_at is an aware UTC datetime -- it is compared against
    the clock on every refresh, so it is not kept as a string like the
    bookkeeping timestamps.
    """

    user_id: str
    refresh_token: str
    expires_at: datetime
    user_agent: str | None = None
    ip_address: str | None = None
    id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def public(self) -> SessionInfo:
        return SessionInfo(
            id=self.id or "",
            user_agent=self.user_agent,
            ip_address=self.ip_address,
            expires_at=self.expires_at,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class SessionInfo:
    """Session projection without the raw refresh token."""

    id: str
    user_agent: str | None
    ip_address: str | None
    expires_at: datetime
    created_at: str


@dataclass(frozen=True)
class ClientMeta:
    """Request metadata passed through opaquely from the boundary."""

    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    user: PublicUser
    tokens: CredentialPair


@dataclass(frozen=True)
class CurrentSession:
    authenticated: bool
    user: CredentialPayload | None = None
