# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# -- Identity ----------------------------------------------------------------


class Identity(BaseModel):
    """The authenticated user as seen by handlers (no secrets)."""

    id: int
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    position: Optional[str] = None
    profile_pic: Optional[str] = None
    is_active: bool = True

    model_config = {"from_attributes": True}


# -- Requests --------------------------------------------------------------


class LoginRequest(BaseModel):
    # Optional: a missing field is answered with the login route's 400
    email: Optional[str] = None
    password: Optional[str] = None


# -- Responses -------------------------------------------------------------


def as_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC; tag them so clients get a 'Z' suffix."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class LoginResponse(BaseModel):
    success: bool = True
    user: Identity
    session_token: str = Field(alias="sessionToken")
    session_expires: datetime = Field(alias="sessionExpires")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("session_expires")
    @classmethod
    def expiry_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SessionStatusResponse(BaseModel):
    success: bool = True
    user: Identity
    valid: bool = True


class MessageResponse(BaseModel):
    success: bool = True
    message: str
