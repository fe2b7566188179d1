"""
auth/sessions.py -- Session lifecycle manager.

Orchestrates the token-session state machine:

    absent --login--> active --refresh--> active (rotated in place)
                         |                     |
                         +--logout / expiry----+--> revoked (row removed)

Login and refresh mint a credential pair with the TokenCodec and write the
refresh token into a Session row. Refresh is single-use: the row's token is
replaced by a conditional UPDATE, so the presented token stops matching any
row the moment rotation succeeds.

Failure semantics:
  Every auth failure surfaces as Unauthorized (or its InvalidCredentials
  subclass). Storage failures during logout surface as InternalError. Any
  other unexpected exception inside login/refresh is logged and re-raised as
  a generic Unauthorized so internal details never cross the auth boundary.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from auth.directory import IdentityDirectory
from auth.errors import AuthError, InternalError, InvalidCredentials, Unauthorized
from auth.models import (
    ClientMeta,
    CredentialPair,
    CredentialPayload,
    CurrentSession,
    LoginResult,
    Session,
    SessionInfo,
)
from auth.protocols import SessionRepository
from auth.tokens import TokenCodec, TokenKind

logger = logging.getLogger("sessionauth.auth.sessions")


class SessionManager:
    """Login, refresh, logout and session listing.

    All collaborators are injected:
        manager = SessionManager(directory, SessionStore(engine), TokenCodec.from_settings(settings))
    """

    def __init__(self, directory: IdentityDirectory, sessions: SessionRepository, codec: TokenCodec) -> None:
        self.directory = directory
        self.sessions = sessions
        self.codec = codec

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, client: ClientMeta | None = None) -> LoginResult:
        client = client or ClientMeta()
        try:
            user = self.directory.authenticate(email, password)
            if user is None:
                logger.info("Login rejected for unknown email or bad password")
                raise InvalidCredentials()

            tokens = self._mint(user.payload())
            session_id = self.sessions.create(
                Session(
                    user_id=user.id,
                    refresh_token=tokens.refresh_token,
                    expires_at=self.codec.refresh_expiry_instant(),
                    user_agent=client.user_agent,
                    ip_address=client.ip_address,
                )
            )
            logger.info("Login ok user_id=%s session_id=%s", user.id, session_id)
            return LoginResult(user=user.public(), tokens=tokens)
        except AuthError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error during login")
            raise Unauthorized("Authentication failed.") from exc

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> CredentialPair:
        try:
            if self.codec.verify(refresh_token, TokenKind.REFRESH) is None:
                # The JWT exp lapses with the row, so a timed-out session fails here first.
                if self._purge_if_expired(refresh_token):
                    raise Unauthorized("Session expired.")
                raise Unauthorized("Invalid refresh token.")

            found = self.sessions.find_by_token_with_user(refresh_token)
            if found is None:
                # Never issued, already rotated, or logged out.
                raise Unauthorized("Session not found.")
            session, user = found

            if session.expires_at <= self.codec.clock():
                self.sessions.delete_by_token(refresh_token)
                logger.info("Expired session revoked session_id=%s", session.id)
                raise Unauthorized("Session expired.")

            tokens = self._mint(user.payload())
            rotated = self.sessions.rotate(
                session.id,
                current_token=refresh_token,
                new_token=tokens.refresh_token,
                expires_at=self.codec.refresh_expiry_instant(),
            )
            if not rotated:
                # A concurrent refresh or logout consumed this token first.
                logger.info("Lost rotation race session_id=%s", session.id)
                raise Unauthorized("Session not found.")
            return tokens
        except AuthError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error during token refresh")
            raise Unauthorized("Token refresh failed.") from exc

    # ------------------------------------------------------------------
    # Logout / revoke
    # ------------------------------------------------------------------

    def logout(self, refresh_token: str | None) -> None:
        """Revoke the session holding refresh_token. Idempotent."""
        if not refresh_token:
            return
        try:
            removed = self.sessions.delete_by_token(refresh_token)
        except SQLAlchemyError as exc:
            logger.exception("Storage error during logout")
            raise InternalError("Logout failed.") from exc
        logger.info("Logout removed %d session(s)", removed)

    def revoke_all(self, user_id: str) -> int:
        """Bulk revoke (force logout). Returns the number of sessions removed."""
        removed = self.sessions.delete_all_for_user(user_id)
        logger.info("Revoked all sessions user_id=%s count=%d", user_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_sessions(self, user_id: str) -> list[SessionInfo]:
        """Active sessions for a user, newest first, without raw token values.

        Sessions past their stored expiry are not listed.
        """
        now = self.codec.clock()
        return [s.public() for s in self.sessions.list_for_user(user_id) if s.expires_at > now]

    def current_session(self, payload: CredentialPayload | None) -> CurrentSession:
        if payload is None:
            return CurrentSession(authenticated=False)
        return CurrentSession(authenticated=True, user=payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _purge_if_expired(self, refresh_token: str | None) -> bool:
        """Delete the row holding refresh_token if its stored expiry has passed."""
        if not refresh_token:
            return False
        session = self.sessions.find_by_token(refresh_token)
        if session is None or session.expires_at > self.codec.clock():
            return False
        self.sessions.delete_by_token(refresh_token)
        logger.info("Expired session revoked session_id=%s", session.id)
        return True

    def _mint(self, payload: CredentialPayload) -> CredentialPair:
        return CredentialPair(
            access_token=self.codec.issue_access_token(payload),
            refresh_token=self.codec.issue_refresh_token(payload),
        )
