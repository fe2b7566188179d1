"""
auth/passwords.py -- bcrypt password hashing behind the PasswordHasher protocol.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler, has no
compatibility shim, and is actively maintained.

The services never import this module; they receive a hasher instance at
construction time (see api/main.attach_services), so tests can inject a
cheaper implementation.
"""

from __future__ import annotations

import bcrypt

_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class BcryptHasher:
    """PasswordHasher implementation backed by bcrypt.

    rounds defaults to bcrypt's own default (12). bcrypt only reads the first
    72 bytes of a password; the API caps length at 72 characters, which is
    more than 72 bytes for non-ASCII input, so the encoded password is cut to
    72 bytes here.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, digest: str) -> bool:
        """Return True if the plaintext matches the digest. Malformed digests never match."""
        try:
            return bcrypt.checkpw(_encode(password), digest.encode("utf-8"))
        except ValueError:
            return False
