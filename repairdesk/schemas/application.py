"""
RepairDesk Backend - Technician Application Schemas
=====================================================

What:  Pydantic records for the nested application groups and the
       request/response bodies of the application endpoints.
How:   Input accepts both snake_case and the camelCase keys sent by the web
       form (fullName, yearsOfExperience, motivationLetter, ...). Output is
       always snake_case.
Who:   ApplicationService validates every incoming submission against
       ApplicationCreate before it touches the database.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from repairdesk.schemas.technician import TechnicianResponse


class _Record(BaseModel):
    """Base for records that accept camelCase keys on input."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


def _split_list(value):
    # "Python, Linux" or "Python\nLinux" → ["Python", "Linux"]
    if isinstance(value, str):
        parts = value.replace("\n", ",").split(",")
        return [p.strip() for p in parts if p.strip()]
    return value


# ── Nested groups ─────────────────────────────────────────────────────────

class PersonalInfo(_Record):
    full_name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    location: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class ProfessionalInfo(_Record):
    specialization: str = Field(min_length=1, max_length=255)
    years_of_experience: int = Field(default=0, ge=0, le=80)
    certifications: Optional[str] = None

    @field_validator("certifications", mode="before")
    @classmethod
    def join_certifications(cls, v):
        if isinstance(v, list):
            return "\n".join(str(item).strip() for item in v if str(item).strip())
        return v


class Background(_Record):
    education: Optional[str] = None
    work_history: Optional[str] = None


class AdditionalInfo(_Record):
    skills: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)

    @field_validator("skills", "languages", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        return _split_list(v)


class DocumentRef(_Record):
    """Opaque reference to a stored document."""
    url: str = Field(min_length=1)
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)


class Documents(_Record):
    cv: DocumentRef
    diplomas: List[DocumentRef] = Field(default_factory=list)
    motivation_letter: Optional[DocumentRef] = None


# ── Requests ──────────────────────────────────────────────────────────────

class ApplicationData(_Record):
    """
    The form fields of a submission, without documents.

    Sent as the `data` JSON part of the multipart endpoint; the uploaded
    files are turned into `Documents` by the document service.
    """
    personal_info: PersonalInfo
    professional_info: ProfessionalInfo
    background: Optional[Background] = None
    additional_info: Optional[AdditionalInfo] = None


class ApplicationCreate(ApplicationData):
    """A complete submission with already-hosted document references."""
    documents: Documents


class StatusUpdate(_Record):
    status: str = Field(description="pending, reviewing, approved, rejected")
    notes: Optional[str] = None


class ApproveRequest(_Record):
    notes: Optional[str] = None


class RejectRequest(_Record):
    # Emptiness is checked by ReviewService so the client gets a 400 with a
    # clear message instead of a schema error.
    notes: str = ""


# ── Responses ─────────────────────────────────────────────────────────────

class ApplicationResponse(_Record):
    id: int
    personal_info: PersonalInfo
    professional_info: ProfessionalInfo
    background: Optional[Background] = None
    additional_info: Optional[AdditionalInfo] = None
    documents: Documents
    status: str
    admin_notes: Optional[str] = None
    technician_id: Optional[int] = None
    submitted_at: datetime
    updated_at: datetime


class ApprovalResponse(BaseModel):
    """
    Returned once by the approve endpoint.

    initial_password is never stored in plain text and cannot be retrieved
    again; the admin hands it to the new technician.
    """
    application: ApplicationResponse
    technician: TechnicianResponse
    initial_password: str
    email_sent: bool = False
