"""
RepairDesk Backend - Notification Inbox Routes
================================================

In-app notifications for the signed-in admin or technician. The recipient is
always taken from the bearer token, never from the request. Admins can purge
old notifications.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.routes.deps import CurrentUser, require_admin, require_user
from repairdesk.schemas.common import Envelope
from repairdesk.schemas.notification import (
    CleanupResponse,
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from repairdesk.services.notification_service import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=Envelope[List[NotificationResponse]])
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = Query(default=False),
    type: Optional[str] = Query(default=None, max_length=50),
    db: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(require_user),
) -> Envelope[List[NotificationResponse]]:
    notifications = await notification_service.list_for_recipient(
        db,
        recipient_type=user.role,
        recipient_id=user.id,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        type=type,
    )
    return Envelope[List[NotificationResponse]](
        data=[NotificationResponse.model_validate(n) for n in notifications],
    )


@router.get("/unread-count", response_model=Envelope[UnreadCountResponse])
async def unread_count(
    db: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(require_user),
) -> Envelope[UnreadCountResponse]:
    count = await notification_service.unread_count(db, user.role, user.id)
    return Envelope[UnreadCountResponse](data=UnreadCountResponse(count=count))


@router.patch("/mark-all-read", response_model=Envelope[MarkAllReadResponse])
async def mark_all_read(
    db: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(require_user),
) -> Envelope[MarkAllReadResponse]:
    updated = await notification_service.mark_all_as_read(db, user.role, user.id)
    return Envelope[MarkAllReadResponse](
        data=MarkAllReadResponse(updated=updated),
        message=f"{updated} notification(s) marked as read",
    )


@router.patch("/{notification_id}/read", response_model=Envelope[NotificationResponse])
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(require_user),
) -> Envelope[NotificationResponse]:
    notification = await notification_service.mark_as_read(db, notification_id, user.role, user.id)
    return Envelope[NotificationResponse](data=NotificationResponse.model_validate(notification))


@router.delete("/cleanup", response_model=Envelope[CleanupResponse])
async def cleanup_notifications(
    older_than_days: int = Query(default=30, ge=1, le=3650),
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[CleanupResponse]:
    deleted = await notification_service.delete_older_than(db, days=older_than_days)
    logger.info("Admin %s purged %d notification(s) older than %d days", admin.id, deleted, older_than_days)
    return Envelope[CleanupResponse](
        data=CleanupResponse(deleted=deleted),
        message=f"{deleted} notification(s) deleted",
    )
