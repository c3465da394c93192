"""
RepairDesk Backend - Admin Technician Routes
==============================================

Technician CRUD for the admin dashboard, plus assigning a technician to a
service request. Every endpoint requires an admin token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.routes.deps import CurrentUser, get_dispatcher, require_admin
from repairdesk.schemas.common import Envelope, ErrorResponse
from repairdesk.schemas.service_request import ServiceRequestResponse
from repairdesk.schemas.technician import (
    TechnicianCreate,
    TechnicianListResponse,
    TechnicianResponse,
    TechnicianUpdate,
)
from repairdesk.services.notification_dispatcher import NotificationDispatcher
from repairdesk.services.service_request_service import service_request_service
from repairdesk.services.technician_service import technician_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/technicians", tags=["Admin: Technicians"])

ERROR_RESPONSES = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Not an administrator", "model": ErrorResponse},
    404: {"description": "Technician not found", "model": ErrorResponse},
    409: {"description": "Email already used", "model": ErrorResponse},
}


@router.get("", response_model=Envelope[TechnicianListResponse], responses=ERROR_RESPONSES)
async def list_technicians(
    response: Response,
    search: Optional[str] = Query(default=None, max_length=100),
    status: Optional[str] = Query(default=None, pattern="^(active|inactive|pending_approval)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[TechnicianListResponse]:
    result = await technician_service.list(db, search=search, status=status, page=page, limit=limit)
    response.headers["X-Total-Count"] = str(result.total)
    return Envelope[TechnicianListResponse](data=result)


@router.post(
    "",
    status_code=201,
    response_model=Envelope[TechnicianResponse],
    responses=ERROR_RESPONSES,
)
async def create_technician(
    payload: TechnicianCreate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[TechnicianResponse]:
    technician = await technician_service.create(db, payload)
    return Envelope[TechnicianResponse](data=technician, message="Technician created")


@router.get("/{technician_id}", response_model=Envelope[TechnicianResponse], responses=ERROR_RESPONSES)
async def get_technician(
    technician_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[TechnicianResponse]:
    technician = await technician_service.get(db, technician_id)
    return Envelope[TechnicianResponse](data=TechnicianResponse.model_validate(technician))


@router.put("/{technician_id}", response_model=Envelope[TechnicianResponse], responses=ERROR_RESPONSES)
async def update_technician(
    technician_id: int,
    payload: TechnicianUpdate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[TechnicianResponse]:
    technician = await technician_service.update(db, technician_id, payload)
    return Envelope[TechnicianResponse](data=technician, message="Technician updated")


@router.delete("/{technician_id}", response_model=Envelope[None], responses=ERROR_RESPONSES)
async def delete_technician(
    technician_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[None]:
    await technician_service.delete(db, technician_id)
    logger.info("Admin %s deleted technician %s", admin.id, technician_id)
    return Envelope[None](message="Technician deleted")


@router.post(
    "/{technician_id}/assign/{request_id}",
    response_model=Envelope[ServiceRequestResponse],
    responses=ERROR_RESPONSES,
)
async def assign_technician(
    technician_id: int,
    request_id: int,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ServiceRequestResponse]:
    service_request = await service_request_service.assign(
        db, request_id, technician_id, dispatcher=dispatcher
    )
    logger.info("Admin %s assigned technician %s to request %s", admin.id, technician_id, request_id)
    return Envelope[ServiceRequestResponse](
        data=ServiceRequestResponse.model_validate(service_request),
        message="Technician assigned",
    )
