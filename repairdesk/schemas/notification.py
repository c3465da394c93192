"""
RepairDesk Backend - Notification & Device Token Schemas
==========================================================
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class NotificationResponse(BaseModel):
    id: int
    recipient_type: str
    recipient_id: Optional[int] = None
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    priority: str
    is_read: bool
    read_at: Optional[datetime] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    count: int


class CleanupResponse(BaseModel):
    deleted: int


class MarkAllReadResponse(BaseModel):
    updated: int


class DeviceTokenRegister(BaseModel):
    """
    Register a push token.

    Applicants have no account: they register with user_type "applicant"
    and their application email as user_id. Clients register with their
    client id and the email the client record was created with. Admins and
    technicians must be signed in as the user they register for.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Union[int, str]
    user_type: Literal["admin", "technician", "client", "applicant"]
    token: str = Field(min_length=1, max_length=512)
    platform: Optional[str] = Field(default=None, max_length=20)
    email: Optional[EmailStr] = None

    @field_validator("user_id")
    @classmethod
    def normalize_user_id(cls, v: Union[int, str]) -> str:
        # Emails are matched case-insensitively against application emails
        return str(v).strip().lower()

    @model_validator(mode="after")
    def applicant_is_addressed_by_email(self) -> "DeviceTokenRegister":
        if self.user_type == "applicant" and "@" not in self.user_id:
            raise ValueError("Applicant device tokens are registered with the application email")
        return self


class DeviceTokenUnregister(BaseModel):
    token: str = Field(min_length=1, max_length=512)


class DeviceTokenResponse(BaseModel):
    id: int
    user_id: str
    user_type: str
    platform: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
