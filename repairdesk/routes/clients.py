"""
RepairDesk Backend - Admin Client Routes
==========================================

Client and contact management for the admin dashboard. Clients are also
created implicitly by public service request submissions.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.routes.deps import CurrentUser, require_admin
from repairdesk.schemas.client import (
    ClientContactCreate,
    ClientContactResponse,
    ClientContactUpdate,
    ClientCreate,
    ClientResponse,
    ClientUpdate,
)
from repairdesk.schemas.common import Envelope, ErrorResponse
from repairdesk.services.client_service import client_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/clients", tags=["Admin: Clients"])

ERROR_RESPONSES = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Not an administrator", "model": ErrorResponse},
    404: {"description": "Client or contact not found", "model": ErrorResponse},
    409: {"description": "Email already used", "model": ErrorResponse},
}


@router.get("", response_model=Envelope[List[ClientResponse]], responses=ERROR_RESPONSES)
async def list_clients(
    search: Optional[str] = Query(default=None, max_length=100),
    is_business: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[List[ClientResponse]]:
    clients = await client_service.list(db, search=search, is_business=is_business)
    return Envelope[List[ClientResponse]](data=[ClientResponse.model_validate(c) for c in clients])


@router.post("", status_code=201, response_model=Envelope[ClientResponse], responses=ERROR_RESPONSES)
async def create_client(
    payload: ClientCreate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ClientResponse]:
    client = await client_service.create(db, payload)
    return Envelope[ClientResponse](data=ClientResponse.model_validate(client), message="Client created")


@router.get("/{client_id}", response_model=Envelope[ClientResponse], responses=ERROR_RESPONSES)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ClientResponse]:
    client = await client_service.get(db, client_id)
    return Envelope[ClientResponse](data=ClientResponse.model_validate(client))


@router.patch("/{client_id}", response_model=Envelope[ClientResponse], responses=ERROR_RESPONSES)
async def update_client(
    client_id: int,
    payload: ClientUpdate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ClientResponse]:
    client = await client_service.update(db, client_id, payload)
    return Envelope[ClientResponse](data=ClientResponse.model_validate(client), message="Client updated")


@router.delete("/{client_id}", response_model=Envelope[None], responses=ERROR_RESPONSES)
async def delete_client(
    client_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[None]:
    await client_service.delete(db, client_id)
    logger.info("Admin %s deleted client %s", admin.id, client_id)
    return Envelope[None](message="Client deleted")


@router.post(
    "/{client_id}/contacts",
    status_code=201,
    response_model=Envelope[ClientContactResponse],
    responses=ERROR_RESPONSES,
)
async def add_client_contact(
    client_id: int,
    payload: ClientContactCreate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ClientContactResponse]:
    contact = await client_service.add_contact(db, client_id, payload)
    return Envelope[ClientContactResponse](
        data=ClientContactResponse.model_validate(contact), message="Contact added"
    )


@router.patch(
    "/contacts/{contact_id}",
    response_model=Envelope[ClientContactResponse],
    responses=ERROR_RESPONSES,
)
async def update_client_contact(
    contact_id: int,
    payload: ClientContactUpdate,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ClientContactResponse]:
    contact = await client_service.update_contact(db, contact_id, payload)
    return Envelope[ClientContactResponse](
        data=ClientContactResponse.model_validate(contact), message="Contact updated"
    )


@router.delete("/contacts/{contact_id}", response_model=Envelope[None], responses=ERROR_RESPONSES)
async def delete_client_contact(
    contact_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[None]:
    await client_service.delete_contact(db, contact_id)
    return Envelope[None](message="Contact deleted")
