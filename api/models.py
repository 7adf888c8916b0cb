"""
API request and response models for the credcore REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request fields default to "" so a body with a missing field still reaches
AuthService, which reports it as invalid_input (400) -- the same outcome as an
explicitly empty field.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=255)
    name: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User registered successfully"


class MeResponse(BaseModel):
    """Identity of the bearer of an access token."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    created_at: str


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
    components: dict[str, str] = Field(default_factory=dict)
