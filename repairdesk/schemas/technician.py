"""
RepairDesk Backend - Technician Schemas
=========================================
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

TechnicianStatus = Literal["active", "inactive", "pending_approval"]


class TechnicianCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    specialization: Optional[str] = Field(default=None, max_length=255)
    status: TechnicianStatus = "active"

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class TechnicianUpdate(BaseModel):
    """Partial update. Omitted fields are left unchanged."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    surname: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    specialization: Optional[str] = Field(default=None, max_length=255)
    status: Optional[TechnicianStatus] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class TechnicianResponse(BaseModel):
    id: int
    name: str
    surname: str
    email: str
    phone_number: Optional[str] = None
    specialization: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TechnicianListResponse(BaseModel):
    technicians: List[TechnicianResponse]
    total: int
    page: int
    limit: int
    pages: int
