"""
RepairDesk Backend - Service Request Message Model
====================================================

Messages posted on a service request by the shop (admin or the assigned
technician). Each new message is pushed to the client's devices.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.database import Base


class ServiceRequestMessage(Base):
    __tablename__ = "service_request_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_type: Mapped[str] = mapped_column(String(20), nullable=False)
    sender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_service_request_messages_request", "service_request_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ServiceRequestMessage(id={self.id}, request={self.service_request_id})>"
