"""
API request and response models for the identity REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models are deliberately permissive (plain strings with empty
defaults): field rules live in auth.credentials so every caller -- HTTP or
otherwise -- gets the same validation and the same messages.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    phoneNumber is accepted as an alias for clients that send the camelCase
    field; phone wins when both are present.
    """

    username: str = ""
    email: str = ""
    phone: str = ""
    phone_number: str = Field(default="", alias="phoneNumber")
    password: str = Field(default="", repr=False)

    model_config = ConfigDict(populate_by_name=True)

    def resolved_phone(self) -> str:
        if self.phone.strip():
            return self.phone.strip()
        return self.phone_number.strip()


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. identifier is a username or an email."""

    identifier: str = ""
    password: str = Field(default="", repr=False)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an identity record. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    phone: str
    role: str
    balance: float
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build a UserResponse from a domain User (Factory Method)."""
        public = user.to_public()
        public["created_at"] = public["created_at"] or ""
        return cls(**public)


class LoginResponse(BaseModel):
    """Response for a successful login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


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
    uptime_seconds: int
    database: str = "ok"
