"""
API request and response models for the User API REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names follow the existing front-end contract: the identity field is
"userName" on the wire and `username` in Python (Field alias).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import Identity

# bcrypt ignores everything past 72 bytes.
_MAX_PASSWORD_LENGTH = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > _MAX_PASSWORD_LENGTH:
        raise ValueError(f"password must be at most {_MAX_PASSWORD_LENGTH} bytes")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/user/login."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(alias="userName", min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RegisterRequest(BaseModel):
    """Request body for POST /api/user/register.

    password2 is the confirmation field from the sign-up form. It is optional
    so scripted clients can register with a single password field; when it is
    sent it must match.
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(alias="userName", min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LENGTH)
    password2: Optional[str] = Field(default=None, max_length=_MAX_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def reject_blank_username(self) -> "RegisterRequest":
        if not self.username.strip():
            raise ValueError("userName must not be blank")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str


class IdentityResponse(BaseModel):
    """The two identity claims carried by every token."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str = Field(serialization_alias="userName")

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(id=identity.id, username=identity.username)


class LoginResponse(BaseModel):
    """Response body for a successful POST /api/user/login."""

    message: str
    token: str
    token_type: str = "bearer"
    user: IdentityResponse


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
