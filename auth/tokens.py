"""
auth/tokens.py -- Token codec: signed, expiring access and refresh credentials.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       independent secrets so that leaking one does not let an attacker
       synthesize the other. Each token also carries a "type" claim and is
       rejected when verified as the other kind.

  Payload: only user id (sub), email and role travel inside a token. A
       forged or stale token therefore reveals nothing else about the account.

  jti: every token carries a random id. Two refresh tokens minted for the
       same user within the same second would otherwise be byte-identical,
       and the refresh token string is the unique key of a session row.

  Verification returns None on any failure -- the session manager and the
       route dependencies turn that into a 401. The codec never raises to the
       caller.

Durations:
  Lifetimes come from settings as strings with a unit suffix ("15m", "7d").
  They are re-parsed on every call rather than cached, so a Settings object
  patched at runtime (tests, admin tooling) takes effect immediately and
  rotation always recomputes expiry the same way login does.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import CredentialPayload

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"

_DEFAULT_ACCESS_LIFETIME = timedelta(minutes=15)
_DEFAULT_REFRESH_LIFETIME = timedelta(days=7)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]*)\s*$")
_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(value: str, default: timedelta) -> timedelta:
    """Parse "<int><unit>" (unit s, m, h or d) into a timedelta.

    An unrecognized unit or a malformed number yields default. A bare number
    has no unit and therefore also falls back to default.
    """
    match = _DURATION_RE.match(value or "")
    if match is None:
        return default
    amount, unit = match.groups()
    unit_name = _UNITS.get(unit)
    if unit_name is None:
        return default
    return timedelta(**{unit_name: int(amount)})


class TokenCodec:
    """Encode and verify the access/refresh credential pair.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.issue_access_token(user.payload())
        payload = codec.verify(token, TokenKind.ACCESS)   # CredentialPayload | None

    clock is injectable so tests can mint tokens that are already expired.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expiration: str = "15m",
        refresh_expiration: str = "7d",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secrets = {TokenKind.ACCESS: access_secret, TokenKind.REFRESH: refresh_secret}
        self.access_expiration = access_expiration
        self.refresh_expiration = refresh_expiration
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_expiration=settings.access_token_expiration,
            refresh_expiration=settings.refresh_token_expiration,
        )

    # ------------------------------------------------------------------
    # Lifetimes
    # ------------------------------------------------------------------

    def access_lifetime(self) -> timedelta:
        return parse_duration(self.access_expiration, _DEFAULT_ACCESS_LIFETIME)

    def refresh_lifetime(self) -> timedelta:
        return parse_duration(self.refresh_expiration, _DEFAULT_REFRESH_LIFETIME)

    def refresh_expiry_instant(self) -> datetime:
        """Return now + refresh lifetime. Persisted on every session row."""
        return self.clock() + self.refresh_lifetime()

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def issue_access_token(self, payload: CredentialPayload) -> str:
        return self._encode(payload, TokenKind.ACCESS, self.access_lifetime())

    def issue_refresh_token(self, payload: CredentialPayload) -> str:
        return self._encode(payload, TokenKind.REFRESH, self.refresh_lifetime())

    def _encode(self, payload: CredentialPayload, kind: TokenKind, lifetime: timedelta) -> str:
        now = self.clock()
        claims = {
            "sub": payload.user_id,
            "email": payload.email,
            "role": payload.role,
            "type": kind.value,
            "iat": now,
            "exp": now + lifetime,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(claims, self._secrets[kind], algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    def verify(self, token: str, kind: TokenKind) -> CredentialPayload | None:
        """Verify signature, expiry and kind. Returns the payload or None on any failure."""
        if not token:
            return None
        try:
            claims = jwt.decode(token, self._secrets[kind], algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if claims.get("type") != kind.value:
            return None
        if not all(claims.get(name) for name in ("sub", "email", "role")):
            return None
        return CredentialPayload(user_id=claims["sub"], email=claims["email"], role=claims["role"])
