"""
API request and response models for VoidRunner REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Deliberately absent: any password hash field. CredentialResponse is the only
shape a Credential leaves the process in.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Claims, Credential

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Empty strings pass schema validation on purpose: AuthService owns the
    "required field" rule and reports it as a validation_error (400).
    """

    username: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    first_name: str = Field(default="", max_length=255)
    last_name: str = Field(default="", max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. identifier is a username or an email."""

    identifier: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CredentialResponse(BaseModel):
    """Public view of a Credential."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_credential(cls, cred: Credential) -> "CredentialResponse":
        return cls(
            id=cred.id,
            username=cred.username,
            email=cred.email,
            first_name=cred.first_name,
            last_name=cred.last_name,
            created_at=cred.created_at,
            updated_at=cred.updated_at,
        )


class LoginResponse(BaseModel):
    """Response for a successful POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: CredentialResponse


class MeResponse(BaseModel):
    """Identity of the caller, taken from verified token claims."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: str
    expires_at: int
    profile: Optional[CredentialResponse] = None

    @classmethod
    def from_claims(cls, claims: Claims, cred: Optional[Credential]) -> "MeResponse":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            email=claims.email,
            expires_at=claims.expires_at,
            profile=CredentialResponse.from_credential(cred) if cred is not None else None,
        )


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
    storage_backend: str
