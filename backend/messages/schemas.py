# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for lead capture and team chat."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------


class SubmissionCreate(BaseModel):
    name: str
    email: str
    company: Optional[str] = None
    service: Optional[str] = None
    message: str


class StatusUpdate(BaseModel):
    status: str


class ChatPost(BaseModel):
    message: Optional[str] = None


# -- Responses -------------------------------------------------------------


class SubmissionRow(BaseModel):
    id: int
    name: str
    email: str
    company: Optional[str] = None
    service: Optional[str] = None
    message: str
    status: str
    submitted_at: datetime
    updated_by: Optional[int] = None
    updated_by_name: Optional[str] = None   # resolved from the users table
    updated_at: Optional[datetime] = None


class SubmissionListResponse(BaseModel):
    success: bool = True
    submissions: List[SubmissionRow]


class SubmissionResponse(BaseModel):
    success: bool = True
    submission: SubmissionRow


class ChatMessageRow(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatListResponse(BaseModel):
    success: bool = True
    messages: List[ChatMessageRow]
