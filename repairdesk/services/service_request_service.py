"""
RepairDesk Backend - Service Request Service
==============================================

What:  Client repair requests: submission, listing, status updates,
       technician assignment and the message thread with the client.
How:   Submission finds or creates the client by email, inserts the request
       and commits. Status updates, assignments and messages commit before
       the dispatcher is called, so a failed push never undoes them.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from repairdesk.models.admin import Admin
from repairdesk.models.client import Client
from repairdesk.models.service_request import ServiceRequest
from repairdesk.models.service_request_message import ServiceRequestMessage
from repairdesk.models.technician import TECHNICIAN_ACTIVE
from repairdesk.schemas.service_request import ServiceRequestCreate
from repairdesk.services.auth_service import ROLE_ADMIN, ROLE_TECHNICIAN
from repairdesk.services.technician_service import technician_service

logger = logging.getLogger(__name__)


class ServiceRequestService:

    async def _client_for(self, db: AsyncSession, payload: ServiceRequestCreate) -> Client:
        result = await db.execute(select(Client).where(func.lower(Client.email) == payload.email))
        client = result.scalar_one_or_none()
        if client is None:
            client = Client(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                address=payload.address,
            )
            db.add(client)
            await db.flush()
            logger.info("Client %s created for %s", client.id, client.email)
        return client

    async def create(
        self, db: AsyncSession, payload: ServiceRequestCreate, dispatcher=None
    ) -> ServiceRequest:
        client = await self._client_for(db, payload)
        service_request = ServiceRequest(
            client_id=client.id,
            device_type=payload.device_type,
            service_type=payload.service_type,
            description=payload.description,
            status="pending",
        )
        db.add(service_request)
        await db.commit()
        logger.info("Service request %s created for client %s", service_request.id, client.id)

        if dispatcher is not None:
            try:
                await dispatcher.notify_new_request(db, service_request)
            except Exception:
                logger.exception("New request notification for %s failed", service_request.id)
        return service_request

    async def list(self, db: AsyncSession, status: Optional[str] = None) -> List[ServiceRequest]:
        query = select(ServiceRequest)
        if status:
            query = query.where(ServiceRequest.status == status)
        result = await db.execute(
            query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
        )
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, request_id: int) -> ServiceRequest:
        service_request = await db.get(ServiceRequest, request_id)
        if service_request is None:
            raise NotFoundError(resource="service request", resource_id=str(request_id))
        return service_request

    async def update_status(
        self,
        db: AsyncSession,
        request_id: int,
        status: str,
        technician_id: Optional[int] = None,
        dispatcher=None,
    ) -> ServiceRequest:
        service_request = await self.get(db, request_id)
        if technician_id is not None:
            await technician_service.get(db, technician_id)
            service_request.technician_id = technician_id

        previous = service_request.status
        service_request.status = status
        await db.commit()
        logger.info("Service request %s: %s → %s", request_id, previous, status)

        if dispatcher is not None and previous != status:
            try:
                await dispatcher.notify_service_status(db, service_request, status)
            except Exception:
                logger.exception("Status notification for service request %s failed", request_id)
        return service_request

    async def assign(
        self,
        db: AsyncSession,
        request_id: int,
        technician_id: int,
        dispatcher=None,
    ) -> ServiceRequest:
        """
        Give a request to an active technician and move it to "assigned".

        Raises:
            NotFoundError: unknown technician or service request.
            ValidationError: the technician is not active.
        """
        technician = await technician_service.get(db, technician_id)
        if technician.status != TECHNICIAN_ACTIVE:
            raise ValidationError(
                message="Only active technicians can be assigned",
                field="technician_id",
                context={"technician_status": technician.status},
            )
        service_request = await self.get(db, request_id)

        service_request.technician_id = technician.id
        service_request.status = "assigned"
        await db.commit()
        logger.info("Service request %s assigned to technician %s", request_id, technician.id)

        if dispatcher is not None:
            try:
                await dispatcher.notify_service_status(db, service_request, "assigned")
            except Exception:
                logger.exception("Assignment notification for service request %s failed", request_id)
        return service_request

    def _ensure_participant(self, service_request: ServiceRequest, user) -> None:
        if user.role == ROLE_ADMIN:
            return
        if user.role == ROLE_TECHNICIAN and service_request.technician_id == user.id:
            return
        raise PermissionDeniedError(message="Only the assigned technician can access this thread")

    async def _sender_name(self, db: AsyncSession, user) -> str:
        if user.role == ROLE_TECHNICIAN:
            technician = await technician_service.get(db, user.id)
            return f"{technician.name} {technician.surname}".strip()
        admin = await db.get(Admin, user.id)
        if admin is not None and admin.name:
            return f"{admin.name} {admin.surname or ''}".strip()
        return "RepairDesk"

    async def post_message(
        self,
        db: AsyncSession,
        request_id: int,
        user,
        content: str,
        dispatcher=None,
    ) -> ServiceRequestMessage:
        """Add a shop message to a request and push a preview to its client."""
        service_request = await self.get(db, request_id)
        self._ensure_participant(service_request, user)
        sender_name = await self._sender_name(db, user)

        message = ServiceRequestMessage(
            service_request_id=service_request.id,
            sender_type=user.role,
            sender_id=user.id,
            content=content,
        )
        db.add(message)
        await db.commit()
        logger.info("Message %s posted on service request %s by %s %s", message.id, request_id, user.role, user.id)

        if dispatcher is not None:
            try:
                await dispatcher.notify_new_message(
                    db, message, service_request.client_id, "client", sender_name
                )
            except Exception:
                logger.exception("Message notification for service request %s failed", request_id)
        return message

    async def list_messages(
        self, db: AsyncSession, request_id: int, user
    ) -> List[ServiceRequestMessage]:
        service_request = await self.get(db, request_id)
        self._ensure_participant(service_request, user)
        result = await db.execute(
            select(ServiceRequestMessage)
            .where(ServiceRequestMessage.service_request_id == request_id)
            .order_by(ServiceRequestMessage.created_at, ServiceRequestMessage.id)
        )
        return list(result.scalars().all())


service_request_service = ServiceRequestService()
