"""
RepairDesk Backend - Technician Model
=======================================

Technician accounts. Created by admins directly or provisioned when an
application is approved. Email is unique and is the login identifier.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.database import Base

TECHNICIAN_ACTIVE = "active"
TECHNICIAN_INACTIVE = "inactive"
TECHNICIAN_PENDING_APPROVAL = "pending_approval"

TECHNICIAN_STATUSES = (TECHNICIAN_ACTIVE, TECHNICIAN_INACTIVE, TECHNICIAN_PENDING_APPROVAL)


class Technician(Base):
    __tablename__ = "technicians"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    specialization: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TECHNICIAN_ACTIVE,
        server_default=text("'active'"),
        comment="active, inactive, pending_approval",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip()

    def __repr__(self) -> str:
        return f"<Technician(id={self.id}, email='{self.email}', status='{self.status}')>"
