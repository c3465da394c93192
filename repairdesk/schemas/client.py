"""
RepairDesk Backend - Client Schemas
=====================================

Admin-side client management. Business clients must name their company.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

PreferredContact = Literal["email", "phone", "sms"]


class ClientContactCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    preferred_contact: PreferredContact = "email"
    address: Optional[str] = None


class ClientContactUpdate(BaseModel):
    """Partial update. Omitted fields are left unchanged."""
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    preferred_contact: Optional[PreferredContact] = None
    address: Optional[str] = None


class ClientContactResponse(BaseModel):
    id: int
    client_id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    preferred_contact: str
    address: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClientCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None
    is_business: bool = False
    company_name: Optional[str] = Field(default=None, max_length=200)
    contacts: List[ClientContactCreate] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode="after")
    def business_has_company_name(self) -> "ClientCreate":
        if self.company_name:
            self.is_business = True
        if self.is_business and not self.company_name:
            raise ValueError("company_name is required for business clients")
        return self


class ClientUpdate(BaseModel):
    """Partial update. Omitted fields are left unchanged."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None
    is_business: Optional[bool] = None
    company_name: Optional[str] = Field(default=None, max_length=200)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class ClientResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    is_business: bool
    company_name: Optional[str] = None
    created_at: datetime
    contacts: List[ClientContactResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}
