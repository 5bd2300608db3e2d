# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the user and activity endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# -- Requests --------------------------------------------------------------


class CreateUserRequest(BaseModel):
    name: str
    email: str
    password: str
    role: str = "user"  # "admin" or "user"
    phone: Optional[str] = None
    position: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: str
    phone: Optional[str] = None
    position: Optional[str] = None
    role: Optional[str] = None  # honoured for admins only


class UpdateProfileRequest(BaseModel):
    name: str
    phone: Optional[str] = None
    position: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    new_password: Optional[str] = None


class ChangeStatusRequest(BaseModel):
    is_active: bool


# -- Responses -------------------------------------------------------------


class UserRow(BaseModel):
    id: int
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    position: Optional[str] = None
    profile_pic: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserRow]


class UserResponse(BaseModel):
    success: bool = True
    user: UserRow


class UserCreatedResponse(BaseModel):
    success: bool = True
    message: str
    user_id: int = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)


# -- Activity log / dashboard responses ------------------------------------


class ActivityLogRow(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None      # resolved from the users table
    action: str
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class ActivityLogListResponse(BaseModel):
    success: bool = True
    logs: List[ActivityLogRow]


class DashboardStats(BaseModel):
    total_users: int = Field(alias="totalUsers")
    total_services: int = Field(alias="totalServices")
    new_contact_messages: int = Field(alias="newContactMessages")
    new_get_in_touch_messages: int = Field(alias="newGetInTouchMessages")
    total_activity_logs: int = Field(alias="totalActivityLogs")

    model_config = ConfigDict(populate_by_name=True)


class DashboardStatsResponse(BaseModel):
    success: bool = True
    stats: DashboardStats
