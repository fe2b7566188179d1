"""
auth/roles.py -- Role enumeration and the single authorization predicate.

Every role check in the codebase goes through has_role(). Route guards in
auth/dependencies.py and the admin rules in api/routes/v1/admin.py call it
rather than comparing role strings inline.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any


class Role(str, Enum):
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"


def has_role(identity: Any, allowed: Iterable[Role | str]) -> bool:
    """Return True if identity.role is one of the allowed roles.

    identity may be a User, PublicUser, or CredentialPayload -- anything with
    a role attribute. None (unauthenticated) never has a role.
    """
    if identity is None:
        return False
    role = getattr(identity, "role", None)
    if role is None:
        return False
    try:
        return Role(role) in {Role(r) for r in allowed}
    except ValueError:
        # Unknown role string (e.g. from a stale token) grants nothing.
        return False
