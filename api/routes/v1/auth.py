"""
api/routes/v1/auth.py -- Authentication and session endpoints.

Routes:
  POST /api/v1/auth/register  -- self-registration (role CLIENT)
  POST /api/v1/auth/login     -- password login; sets access + refresh cookies
  POST /api/v1/auth/refresh   -- rotate the refresh token; sets new cookies
  POST /api/v1/auth/logout    -- revoke the session; clears cookies
  GET  /api/v1/auth/session   -- current session state (soft auth)

Security:
  Login, register and refresh are rate-limited per IP (limits in settings).
  Login and refresh responses carry Cache-Control: no-store.
  Unknown email and wrong password return the identical 401 body.

Handlers that hash passwords or verify tokens are plain def functions, so
FastAPI runs them in its thread pool and bcrypt never blocks the event loop.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, refresh_limit, register_limit
from api.models import (
    CurrentSessionResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    SessionIdentity,
    TokenPairResponse,
    UserResponse,
)
from auth.dependencies import ACCESS_COOKIE, REFRESH_COOKIE, try_get_current_payload
from auth.errors import Forbidden, Unauthorized
from auth.models import ClientMeta, CredentialPair, CredentialPayload
from auth.sessions import SessionManager

# Auth policy:
# - POST /auth/register: public (can be disabled with SELF_REGISTRATION_ENABLED=false)
# - POST /auth/login:    public
# - POST /auth/refresh:  public -- the refresh token is the credential
# - POST /auth/logout:   public -- revoking a session needs only its refresh token
# - GET  /auth/session:  public -- reports authenticated=false instead of 401
router = APIRouter(prefix="/auth")


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_token_cookies(request: Request, response: Response, tokens: CredentialPair) -> None:
    """Write both tokens as httpOnly cookies with max-age matching their lifetimes.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    samesite / secure: from settings; production runs with SECURE_COOKIES=true.
    The refresh cookie is scoped to the auth routes so it is not sent with
    every API call.
    """
    settings = request.app.state.settings
    codec = request.app.state.token_codec
    common = {"httponly": True, "samesite": settings.cookie_samesite, "secure": settings.secure_cookies}
    response.set_cookie(
        ACCESS_COOKIE,
        value=tokens.access_token,
        max_age=int(codec.access_lifetime().total_seconds()),
        **common,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=tokens.refresh_token,
        max_age=int(codec.refresh_lifetime().total_seconds()),
        path="/api/v1/auth",
        **common,
    )


def clear_token_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE, path="/api/v1/auth")


def _presented_refresh_token(request: Request, body: Optional[RefreshRequest]) -> str | None:
    if body is not None and body.refresh_token:
        return body.refresh_token
    return request.cookies.get(REFRESH_COOKIE) or None


def _expires_in(request: Request) -> int:
    return int(request.app.state.token_codec.access_lifetime().total_seconds())


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@limiter.limit(register_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a CLIENT account. Duplicate email -> 400 email_taken."""
    if not request.app.state.settings.self_registration_enabled:
        raise Forbidden("Self-registration is disabled.", code="registration_disabled")
    user = request.app.state.directory.register(body.email, body.password, body.name)
    return UserResponse.from_user(user)


@limiter.limit(login_limit)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; open a session and set cookies."""
    manager: SessionManager = request.app.state.session_manager
    client = ClientMeta(
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    result = manager.login(body.email, body.password, client)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user=UserResponse.from_user(result.user),
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_expires_in(request),
        ).model_dump(),
    )
    set_token_cookies(request, resp, result.tokens)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(refresh_limit)
@router.post("/refresh", response_model=TokenPairResponse)
def refresh(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Rotate the presented refresh token. The old token is dead after this call."""
    token = _presented_refresh_token(request, body)
    if token is None:
        raise Unauthorized("Refresh token missing.")
    manager: SessionManager = request.app.state.session_manager
    tokens = manager.refresh(token)

    resp = JSONResponse(
        status_code=200,
        content=TokenPairResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type="bearer",  # noqa: S106 # nosec B106
            expires_in=_expires_in(request),
        ).model_dump(),
    )
    set_token_cookies(request, resp, tokens)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Revoke the session behind the presented refresh token and clear cookies.

    Idempotent: an unknown, already-revoked or missing token still returns 200.
    """
    manager: SessionManager = request.app.state.session_manager
    manager.logout(_presented_refresh_token(request, body))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_token_cookies(resp)
    return resp


@router.get("/session", response_model=CurrentSessionResponse)
def current_session(
    request: Request,
    payload: Optional[CredentialPayload] = Depends(try_get_current_payload),
) -> CurrentSessionResponse:
    """Report whether the request carries a valid access token, and for whom."""
    manager: SessionManager = request.app.state.session_manager
    state = manager.current_session(payload)
    if not state.authenticated or state.user is None:
        return CurrentSessionResponse(authenticated=False)
    return CurrentSessionResponse(
        authenticated=True,
        user=SessionIdentity(id=state.user.user_id, email=state.user.email, role=state.user.role),
    )
