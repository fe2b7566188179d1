"""
api/routes/v1/admin.py -- User and session administration (ADMIN only).

Routes:
  GET    /api/v1/admin/users                      -- list all users
  POST   /api/v1/admin/users                      -- create a user with any role
  GET    /api/v1/admin/users/{user_id}            -- one user
  PUT    /api/v1/admin/users/{user_id}            -- partial update (role included)
  DELETE /api/v1/admin/users/{user_id}            -- delete user and all sessions
  GET    /api/v1/admin/users/{user_id}/sessions   -- a user's active sessions
  DELETE /api/v1/admin/users/{user_id}/sessions   -- force logout everywhere

Guards:
  An admin cannot delete their own account, and the last ADMIN cannot be
  demoted -- either would leave the system with no recovery path short of
  direct database access.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import MessageResponse, SessionResponse, UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_admin
from auth.errors import BadRequest
from auth.models import PublicUser
from auth.roles import Role, has_role

# Router-level dependency: every route below requires an ADMIN.
router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in request.app.state.directory.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    user = request.app.state.directory.create_user(body.email, body.password, body.name, body.role)
    return UserResponse.from_user(user)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str) -> UserResponse:
    return UserResponse.from_user(request.app.state.directory.find_by_id(user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    current_user: PublicUser = Depends(require_admin),
) -> UserResponse:
    directory = request.app.state.directory
    if body.role is not None and body.role != Role.ADMIN:
        target = directory.find_by_id(user_id)
        if has_role(target, {Role.ADMIN}) and request.app.state.user_store.count_admins() <= 1:
            raise BadRequest("Cannot demote the last admin account.", code="last_admin")
    updated = directory.update_user(
        user_id,
        email=body.email,
        name=body.name,
        password=body.password,
        role=body.role,
    )
    return UserResponse.from_user(updated)


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: str,
    current_user: PublicUser = Depends(require_admin),
) -> MessageResponse:
    if user_id == current_user.id:
        raise BadRequest("You cannot delete your own account.", code="self_deletion")
    request.app.state.directory.delete_user(user_id)
    return MessageResponse(message="User deleted.")


@router.get("/users/{user_id}/sessions", response_model=list[SessionResponse])
def list_user_sessions(request: Request, user_id: str) -> list[SessionResponse]:
    """Sessions of any user. An unknown or deleted user simply has none."""
    sessions = request.app.state.session_manager.list_sessions(user_id)
    return [SessionResponse.from_info(s) for s in sessions]


@router.delete("/users/{user_id}/sessions", status_code=204)
def revoke_user_sessions(request: Request, user_id: str) -> Response:
    request.app.state.session_manager.revoke_all(user_id)
    return Response(status_code=204)
