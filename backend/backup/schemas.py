# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic response models for the backup / restore endpoints."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.schemas import Identity, as_utc


class RestoreResponse(BaseModel):
    success: bool = True
    message: str
    user: Identity
    tables: List[str]
    # A fresh session in the restored store, so the caller stays logged in
    session_token: str = Field(alias="sessionToken")
    session_expires: datetime = Field(alias="sessionExpires")
    auto_login: bool = Field(default=True, alias="autoLogin")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("session_expires")
    @classmethod
    def expiry_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
