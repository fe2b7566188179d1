"""
api/routes/v1/users.py -- Self-service endpoints for the authenticated user.

Routes:
  GET /api/v1/user/profile   -- current account
  PUT /api/v1/user/profile   -- update email / name / password (never role)
  GET /api/v1/user/sessions  -- the caller's active sessions, newest first
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ProfileUpdate, SessionResponse, UserResponse
from auth.dependencies import get_current_user
from auth.models import PublicUser

router = APIRouter(prefix="/user")


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: PublicUser = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: PublicUser = Depends(get_current_user),
) -> UserResponse:
    """Update the caller's own account.

    ProfileUpdate has no role field and pydantic drops unknown keys, so a
    client-supplied "role" never reaches the directory.
    """
    updated = request.app.state.directory.update_profile(
        current_user.id,
        email=body.email,
        name=body.name,
        password=body.password,
    )
    return UserResponse.from_user(updated)


@router.get("/sessions", response_model=list[SessionResponse])
def list_my_sessions(
    request: Request,
    current_user: PublicUser = Depends(get_current_user),
) -> list[SessionResponse]:
    sessions = request.app.state.session_manager.list_sessions(current_user.id)
    return [SessionResponse.from_info(s) for s in sessions]
