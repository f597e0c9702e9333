"""
API request and response models for the /user endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request models forbid unknown fields, so a body carrying e.g. "role" is
rejected instead of silently ignored. JSON field names are camelCase where the
client contract uses them (displayName, createdAt).
"""

from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from auth.models import AccountProfile

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PASSWORD_MIN_LENGTH = 7
PASSWORD_MAX_LENGTH = 30

_Password = Annotated[str, Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)]


def _check_email(value: str) -> str:
    """Reject malformed addresses but keep the submitted form.

    Accounts are keyed by the exact stored email, so the normalized address
    email-validator computes is discarded rather than stored.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"Invalid email: {exc}") from exc
    return value


_Email = Annotated[str, Field(max_length=255), AfterValidator(_check_email)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /user/create."""

    model_config = ConfigDict(extra="forbid")

    email: _Email
    password: _Password
    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=255)


class UserLogin(BaseModel):
    """Request body for POST /user/login."""

    model_config = ConfigDict(extra="forbid")

    email: _Email
    password: _Password


class UserForgotPassword(BaseModel):
    """Request body for POST /user/forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: _Email


class UserResetPassword(BaseModel):
    """Request body for POST /user/reset-password. `key` is the emailed token."""

    model_config = ConfigDict(extra="forbid")

    email: _Email
    key: str = Field(max_length=128)
    password: _Password


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MeResponse(BaseModel):
    """Response for GET /user/me -- the public account projection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    email: str
    display_name: Optional[str] = Field(alias="displayName")
    created_at: str = Field(alias="createdAt")
    role: str

    @classmethod
    def from_profile(cls, profile: AccountProfile) -> "MeResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            created_at=profile.created_at,
            role=profile.role.value,
        )


class MessageResponse(BaseModel):
    """`{message}` body used by success and failure responses alike."""

    model_config = ConfigDict(frozen=True)

    message: str


class ValidationErrorResponse(BaseModel):
    """Body for requests that fail schema validation: one message per field problem."""

    model_config = ConfigDict(frozen=True)

    message: str
    errors: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
