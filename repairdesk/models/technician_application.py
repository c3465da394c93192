"""
RepairDesk Backend - Technician Application Model
===================================================

What:  ORM model for the `technician_applications` table.
How:   Nested application groups (personal info, professional info, background,
       additional info, documents) are stored as JSON columns. Their shape is
       enforced by the pydantic records in schemas/application.py before
       anything is written.
Who:   ApplicationService (CRUD) and ReviewService (approve/reject).

Lifecycle:
    pending ──► reviewing ──► approved
       │            │
       │            └───────► rejected
       ├──────────────────────► approved
       └──────────────────────► rejected

    approved and rejected are terminal. Rows are never deleted.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.database import Base

STATUS_PENDING = "pending"
STATUS_REVIEWING = "reviewing"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

APPLICATION_STATUSES = (STATUS_PENDING, STATUS_REVIEWING, STATUS_APPROVED, STATUS_REJECTED)
TERMINAL_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})

# current status → statuses it may move to
ALLOWED_TRANSITIONS = {
    STATUS_PENDING: frozenset({STATUS_REVIEWING, STATUS_APPROVED, STATUS_REJECTED}),
    STATUS_REVIEWING: frozenset({STATUS_APPROVED, STATUS_REJECTED}),
    STATUS_APPROVED: frozenset(),
    STATUS_REJECTED: frozenset(),
}


class TechnicianApplication(Base):
    """A candidate's request to become a technician."""

    __tablename__ = "technician_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    personal_info: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="full_name, email, phone, location",
    )

    professional_info: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="specialization, years_of_experience, certifications",
    )

    background: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="education, work_history",
    )

    additional_info: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="skills, languages",
    )

    documents: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        comment="cv, diplomas, motivation_letter document references",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_PENDING,
        server_default=text("'pending'"),
        comment="pending, reviewing, approved, rejected",
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    technician_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("technicians.id", ondelete="RESTRICT"),
        nullable=True,
        comment="Technician account provisioned on approval",
    )

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_technician_applications_status", "status"),
        Index("idx_technician_applications_submitted_at", "submitted_at"),
    )

    @property
    def applicant_email(self) -> Optional[str]:
        return (self.personal_info or {}).get("email")

    @property
    def applicant_name(self) -> str:
        return (self.personal_info or {}).get("full_name", "")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<TechnicianApplication(id={self.id}, status='{self.status}', "
            f"email='{self.applicant_email}')>"
        )
