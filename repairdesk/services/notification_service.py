"""
RepairDesk Backend - Notification Inbox Service
=================================================

What:  Read side of in-app notifications: listing, unread counts and
       read-state changes for the admin and technician dashboards.
How:   A notification is visible to a user when its recipient_type matches and
       its recipient_id is either NULL (broadcast) or the user's id.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import NotFoundError
from repairdesk.models.notification import Notification

logger = logging.getLogger(__name__)


def _addressed_to(recipient_type: str, recipient_id: Optional[int]):
    return (
        Notification.recipient_type == recipient_type,
        or_(Notification.recipient_id.is_(None), Notification.recipient_id == recipient_id),
    )


class NotificationService:

    async def list_for_recipient(
        self,
        db: AsyncSession,
        recipient_type: str,
        recipient_id: Optional[int],
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
        type: Optional[str] = None,
    ) -> List[Notification]:
        query = select(Notification).where(*_addressed_to(recipient_type, recipient_id))
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if type:
            query = query.where(Notification.type == type)
        query = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def unread_count(
        self, db: AsyncSession, recipient_type: str, recipient_id: Optional[int]
    ) -> int:
        count = await db.scalar(
            select(func.count(Notification.id)).where(
                *_addressed_to(recipient_type, recipient_id),
                Notification.is_read.is_(False),
            )
        )
        return count or 0

    async def mark_as_read(
        self,
        db: AsyncSession,
        notification_id: int,
        recipient_type: str,
        recipient_id: Optional[int],
    ) -> Notification:
        """
        Raises:
            NotFoundError: no such notification, or not addressed to this user.
        """
        result = await db.execute(
            update(Notification)
            .where(Notification.id == notification_id, *_addressed_to(recipient_type, recipient_id))
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))

        notification = await db.get(Notification, notification_id, populate_existing=True)
        return notification

    async def mark_all_as_read(
        self, db: AsyncSession, recipient_type: str, recipient_id: Optional[int]
    ) -> int:
        """Returns the number of notifications that were unread."""
        result = await db.execute(
            update(Notification)
            .where(
                *_addressed_to(recipient_type, recipient_id),
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Marked %d notification(s) read for %s:%s", result.rowcount, recipient_type, recipient_id
        )
        return result.rowcount

    async def delete_older_than(self, db: AsyncSession, days: int = 30) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await db.execute(
            delete(Notification)
            .where(Notification.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        logger.info("Deleted %d notification(s) older than %d days", result.rowcount, days)
        return result.rowcount


notification_service = NotificationService()
