"""
auth/errors.py -- Typed error conditions for the credential and token core.

Two families live here:

  Caller-facing (AuthError subclasses): each carries a stable machine code,
  a caller-safe message and the HTTP status the transport layer should use.
  Messages never name which identifier collided or whether an account exists.

  Directory signals (DirectoryError subclasses): raised by UserDirectory
  implementations and consumed by CredentialManager. They never reach the
  caller; the manager translates them into AuthError subclasses.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every condition the core reports to its caller."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or missing input. User-fixable; no side effects occurred."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid input."


class ConflictError(AuthError):
    """Username or email already registered. Deliberately does not say which."""

    code = "conflict"
    status_code = 409
    default_message = "user already exists"


class UnauthorizedError(AuthError):
    """Bad credentials. Identical for unknown identifier and wrong password."""

    code = "bad_credentials"
    status_code = 401
    default_message = "invalid credentials"


class InternalError(AuthError):
    """Hashing, signing or storage failure. Details are logged, never returned."""

    code = "internal_error"
    status_code = 500
    default_message = "An unexpected error occurred."


# ---------------------------------------------------------------------------
# Directory signals
# ---------------------------------------------------------------------------


class DirectoryError(Exception):
    """Any failure inside a UserDirectory implementation."""


class RecordNotFoundError(DirectoryError):
    """A lookup matched no record."""


class DuplicateRecordError(DirectoryError):
    """An insert violated a uniqueness constraint.

    field names the colliding column ("username" or "email") when the backend
    reports it, else None. The credential manager reads it for logging only.
    """

    def __init__(self, field: str | None = None) -> None:
        self.field = field
        super().__init__(f"duplicate value for {field or 'unique field'}")
