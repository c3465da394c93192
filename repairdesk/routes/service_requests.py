"""
RepairDesk Backend - Service Request Routes
=============================================

Clients submit repair requests without an account; admins list them and
move them through their lifecycle. Status changes are pushed to the client.
The shop (admin or the assigned technician) keeps a message thread on each
request; every new message is pushed to the client as a preview.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.routes.deps import CurrentUser, get_dispatcher, require_admin, require_user
from repairdesk.schemas.common import Envelope
from repairdesk.schemas.service_request import (
    ServiceRequestCreate,
    ServiceRequestMessageCreate,
    ServiceRequestMessageResponse,
    ServiceRequestResponse,
    ServiceRequestStatusUpdate,
)
from repairdesk.services.notification_dispatcher import NotificationDispatcher
from repairdesk.services.service_request_service import service_request_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/service-requests", tags=["Service Requests"])


@router.post("", status_code=201, response_model=Envelope[ServiceRequestResponse])
async def create_service_request(
    payload: ServiceRequestCreate,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Envelope[ServiceRequestResponse]:
    service_request = await service_request_service.create(db, payload, dispatcher=dispatcher)
    return Envelope[ServiceRequestResponse](
        data=ServiceRequestResponse.model_validate(service_request),
        message="Service request submitted",
    )


@router.get("", response_model=Envelope[List[ServiceRequestResponse]])
async def list_service_requests(
    status: Optional[str] = Query(
        default=None, pattern="^(pending|assigned|in_progress|completed|cancelled)$"
    ),
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[List[ServiceRequestResponse]]:
    requests = await service_request_service.list(db, status=status)
    return Envelope[List[ServiceRequestResponse]](
        data=[ServiceRequestResponse.model_validate(r) for r in requests],
    )


@router.get("/{request_id}", response_model=Envelope[ServiceRequestResponse])
async def get_service_request(
    request_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ServiceRequestResponse]:
    service_request = await service_request_service.get(db, request_id)
    return Envelope[ServiceRequestResponse](data=ServiceRequestResponse.model_validate(service_request))


@router.patch("/{request_id}/status", response_model=Envelope[ServiceRequestResponse])
async def update_service_request_status(
    request_id: int,
    payload: ServiceRequestStatusUpdate,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ServiceRequestResponse]:
    service_request = await service_request_service.update_status(
        db,
        request_id,
        payload.status,
        technician_id=payload.technician_id,
        dispatcher=dispatcher,
    )
    logger.info("Admin %s set service request %s to '%s'", admin.id, request_id, payload.status)
    return Envelope[ServiceRequestResponse](
        data=ServiceRequestResponse.model_validate(service_request),
        message=f"Service request status updated to {payload.status}",
    )


@router.get("/{request_id}/messages", response_model=Envelope[List[ServiceRequestMessageResponse]])
async def list_service_request_messages(
    request_id: int,
    db: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(require_user),
) -> Envelope[List[ServiceRequestMessageResponse]]:
    messages = await service_request_service.list_messages(db, request_id, user)
    return Envelope[List[ServiceRequestMessageResponse]](
        data=[ServiceRequestMessageResponse.model_validate(m) for m in messages],
    )


@router.post(
    "/{request_id}/messages",
    status_code=201,
    response_model=Envelope[ServiceRequestMessageResponse],
)
async def post_service_request_message(
    request_id: int,
    payload: ServiceRequestMessageCreate,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    user: CurrentUser = Depends(require_user),
) -> Envelope[ServiceRequestMessageResponse]:
    message = await service_request_service.post_message(
        db, request_id, user, payload.content, dispatcher=dispatcher
    )
    return Envelope[ServiceRequestMessageResponse](
        data=ServiceRequestMessageResponse.model_validate(message),
        message="Message sent",
    )
