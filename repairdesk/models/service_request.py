"""
RepairDesk Backend - Service Request Model
============================================

What:  A client's repair request (device, type of service, description).
Who:   ServiceRequestService; status changes are pushed to the client and new
       requests are broadcast to active technicians by the dispatcher.

Status values: pending → assigned → in_progress → completed, or cancelled.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairdesk.database import Base

SERVICE_REQUEST_STATUSES = ("pending", "assigned", "in_progress", "completed", "cancelled")


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )

    device_type: Mapped[str] = mapped_column(String(100), nullable=False)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
    )

    technician_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("technicians.id", ondelete="SET NULL"),
        nullable=True,
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

    client = relationship("Client", lazy="selectin")

    __table_args__ = (
        Index("idx_service_requests_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<ServiceRequest(id={self.id}, status='{self.status}')>"
