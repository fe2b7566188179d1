"""
API request and response models for SessionAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation lives here: by the time a route calls into auth/, every field has
already been checked (email shape, password length, non-empty name).

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

from auth.models import PublicUser, SessionInfo
from auth.roles import Role

_PASSWORD_MIN = 6
_PASSWORD_MAX = 72  # bcrypt truncates beyond 72 bytes

# Names are trimmed. Passwords are hashed exactly as sent.
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Any role field sent by the client is ignored -- self-registered accounts
    are always CLIENT.
    """

    email: EmailStr
    password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)
    name: DisplayName


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class RefreshRequest(BaseModel):
    """Optional body for /auth/refresh and /auth/logout.

    Browser clients rely on the refresh_token cookie and send no body; API
    clients send the token here.
    """

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/user/profile. There is no role field."""

    email: Optional[EmailStr] = None
    name: Optional[DisplayName] = None
    password: Optional[str] = Field(default=None, min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)


class UserCreate(BaseModel):
    """Request body for POST /api/v1/admin/users."""

    email: EmailStr
    password: str = Field(min_length=_PASSWORD_MIN, max_length=_PASSWORD_MAX)
    name: DisplayName
    role: Role = Role.CLIENT


class UserUpdate(ProfileUpdate):
    """Request body for PUT /api/v1/admin/users/{user_id}."""

    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Password-free account representation."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class SessionResponse(BaseModel):
    """One active session. The refresh token itself is never returned."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_agent: Optional[str]
    ip_address: Optional[str]
    expires_at: datetime
    created_at: str

    @classmethod
    def from_info(cls, info: SessionInfo) -> "SessionResponse":
        return cls(
            id=info.id,
            user_agent=info.user_agent,
            ip_address=info.ip_address,
            expires_at=info.expires_at,
            created_at=info.created_at,
        )


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class SessionIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str


class CurrentSessionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    authenticated: bool
    user: Optional[SessionIdentity] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
