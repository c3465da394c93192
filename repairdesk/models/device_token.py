"""
RepairDesk Backend - Device Token Model
=========================================

Push tokens registered by mobile/web clients. A user may own several tokens
(one per device). `user_id` is a string: numeric ids for accounts, the email
address for applicants, who have no account yet.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.database import Base

USER_TYPES = ("admin", "technician", "client", "applicant")


class DeviceToken(Base):
    __tablename__ = "device_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)
    token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    platform: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_device_tokens_user", "user_id", "user_type"),
    )

    def __repr__(self) -> str:
        return f"<DeviceToken(id={self.id}, user={self.user_type}:{self.user_id})>"
