"""
auth/errors.py -- Typed error taxonomy for the auth services.

Every failure raised by IdentityDirectory and SessionManager is an AuthError
subclass carrying one ErrorKind. The boundary layer (api/main.py) maps the
kind to an HTTP status and renders the shared error envelope; the services
themselves know nothing about HTTP.

Security-sensitive failures (bad login, bad/expired refresh token) use
deliberately generic messages so responses cannot be used to enumerate
accounts or probe session state.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    INTERNAL = "internal_error"


class AuthError(Exception):
    """Base class for all typed auth failures.

    code is the machine-readable value placed in the error envelope. It
    defaults to the kind's value; subclasses override it where clients need
    to tell failures of the same kind apart (e.g. "email_taken").
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "An unexpected error occurred."
    default_code: str | None = None

    def __init__(self, message: str | None = None, *, code: str | None = None, detail: dict | None = None) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code or self.kind.value
        self.detail = detail
        super().__init__(self.message)


class ValidationFailed(AuthError):
    kind = ErrorKind.VALIDATION
    default_message = "Request validation failed."


class Unauthorized(AuthError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required."


class InvalidCredentials(Unauthorized):
    """Raised for both unknown email and wrong password -- same message, same code."""

    default_message = "Invalid email or password."
    default_code = "invalid_credentials"


class Forbidden(AuthError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You do not have permission to perform this action."


class NotFound(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "User not found."


class BadRequest(AuthError):
    kind = ErrorKind.BAD_REQUEST
    default_message = "Bad request."


class DuplicateEmail(BadRequest):
    default_message = "A user with that email already exists."
    default_code = "email_taken"


class InternalError(AuthError):
    kind = ErrorKind.INTERNAL
