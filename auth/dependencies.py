"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two transports are checked in priority order for the access token:
  1. "access_token" cookie -- set by POST /auth/login and /auth/refresh.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_payload() is the soft variant (returns None on failure).
get_current_user() wraps it, loads the account, and raises 401.
require_roles() wraps get_current_user() and raises 403 via has_role().

Access tokens are stateless: verifying one never touches the session table.
get_current_user() does load the user row, so a deleted account stops
working immediately even while its access token is still unexpired.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request/Depends) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.errors import Forbidden, NotFound, Unauthorized
from auth.models import CredentialPayload, PublicUser
from auth.roles import Role, has_role
from auth.tokens import TokenCodec, TokenKind

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def extract_access_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_payload(request: Request) -> CredentialPayload | None:
    """Return the verified access-token payload, or None. Never raises."""
    token = extract_access_token(request)
    if token is None:
        return None
    codec: TokenCodec = request.app.state.token_codec
    return codec.verify(token, TokenKind.ACCESS)


def get_current_user(request: Request) -> PublicUser:
    """Require authentication. Raises Unauthorized (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: PublicUser = Depends(get_current_user)): ...
    """
    payload = try_get_current_payload(request)
    if payload is None:
        raise Unauthorized()
    try:
        return request.app.state.directory.find_by_id(payload.user_id)
    except NotFound as exc:
        raise Unauthorized() from exc


def require_roles(*roles: Role) -> Callable[..., PublicUser]:
    """Build a dependency that admits only users holding one of roles."""

    def dependency(user: PublicUser = Depends(get_current_user)) -> PublicUser:
        if not has_role(user, roles):
            raise Forbidden()
        return user

    return dependency


require_admin = require_roles(Role.ADMIN)
