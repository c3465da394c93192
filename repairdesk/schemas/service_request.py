"""
RepairDesk Backend - Service Request Schemas
==============================================
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

ServiceRequestStatus = Literal["pending", "assigned", "in_progress", "completed", "cancelled"]


class ServiceRequestCreate(BaseModel):
    """Public submission. The client record is created or reused by email."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None
    device_type: str = Field(min_length=1, max_length=100)
    service_type: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class ServiceRequestStatusUpdate(BaseModel):
    status: ServiceRequestStatus
    technician_id: Optional[int] = None


class ServiceRequestResponse(BaseModel):
    id: int
    client_id: int
    device_type: str
    service_type: str
    description: Optional[str] = None
    status: str
    technician_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceRequestMessageCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=5000)


class ServiceRequestMessageResponse(BaseModel):
    id: int
    service_request_id: int
    sender_type: str
    sender_id: int
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}
