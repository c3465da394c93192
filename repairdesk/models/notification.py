"""
RepairDesk Backend - Notification Model
=========================================

What:  In-app notifications shown in the admin and technician dashboards.
How:   A row addresses either one user (recipient_id set) or every user of a
       recipient type (recipient_id NULL). Push delivery is separate and
       leaves no trace in this table.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, false, text
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.database import Base

RECIPIENT_TYPES = ("admin", "technician", "client")
PRIORITIES = ("low", "normal", "high")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="NULL addresses every user of recipient_type",
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    priority: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="normal",
        server_default=text("'normal'"),
    )

    is_read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    related_entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notifications_recipient", "recipient_type", "recipient_id", "is_read"),
        Index("idx_notifications_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, type='{self.type}', "
            f"recipient={self.recipient_type}:{self.recipient_id}, read={self.is_read})>"
        )
