"""User-related Pydantic schemas."""

from pydantic import BaseModel, Field, field_validator

from .common import WireModel

PHONE_PATTERN = r"^\+?[0-9][0-9\- ()]{1,30}$"


def normalize_phone(value: str) -> str:
    """Strip surrounding whitespace from a phone address."""
    return value.strip()


class RegisterRequest(BaseModel):
    """Schema for registering a new user."""

    name: str = Field(..., min_length=1, max_length=64)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("phone", mode="before")
    @classmethod
    def _strip_phone(cls, value: str) -> str:
        return normalize_phone(value) if isinstance(value, str) else value


class LoginRequest(BaseModel):
    """Schema for logging in with phone and password."""

    phone: str = Field(..., min_length=1, max_length=32)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("phone", mode="before")
    @classmethod
    def _strip_phone(cls, value: str) -> str:
        return normalize_phone(value) if isinstance(value, str) else value


class UserSummary(WireModel):
    """Public profile shown in chat lists and lookups."""

    id: int
    name: str
    phone: str
    online: bool = False


class LoginResponse(BaseModel):
    """Token issued on successful login."""

    token: str
    user: UserSummary
