# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the services catalog."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ServiceCreate(BaseModel):
    name: str
    description: str
    category: str
    icon: str


class ServiceUpdate(ServiceCreate):
    is_active: bool = True


class ServiceRow(BaseModel):
    id: int
    name: str
    description: str
    category: str
    icon: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceListResponse(BaseModel):
    success: bool = True
    services: List[ServiceRow]


class ServiceResponse(BaseModel):
    success: bool = True
    service: ServiceRow


class ServiceCreatedResponse(BaseModel):
    success: bool = True
    message: str
    service_id: int = Field(alias="serviceId")

    model_config = ConfigDict(populate_by_name=True)
