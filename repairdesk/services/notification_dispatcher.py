"""
RepairDesk Backend - Notification Dispatcher
==============================================

What:  Turns domain events (application status change, new service request,
       service status change, new message) into push messages and in-app
       notification rows.
How:   Looks up device tokens for the addressed users, builds a localized
       PushMessage and hands it to the configured PushTransport. In-app
       notifications are inserted into the `notifications` table.
Who:   ReviewService, ApplicationService and ServiceRequestService, always
       AFTER their own transaction has committed.

Contract:
    Every method returns a DeliveryReport (or the new Notification row) on
    success and None otherwise. Missing configuration, missing tokens,
    TransportError and database errors during lookup are logged and swallowed.
    Nothing raised here may fail or roll back the operation that triggered it.

The dispatcher holds no global state: it is built from an explicit PushConfig
at startup and stored on app.state.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.config import PushConfig
from repairdesk.exceptions import TransportError
from repairdesk.models.device_token import DeviceToken
from repairdesk.models.notification import Notification
from repairdesk.models.service_request import ServiceRequest
from repairdesk.models.service_request_message import ServiceRequestMessage
from repairdesk.models.technician import TECHNICIAN_ACTIVE, Technician
from repairdesk.models.technician_application import TechnicianApplication
from repairdesk.services.push_transport import DeliveryReport, PushMessage, PushTransport

logger = logging.getLogger(__name__)

APPLICATION_STATUS_TITLE = "Mise à jour de votre candidature"
APPLICATION_STATUS_MESSAGES = {
    "pending": "Votre candidature a été reçue et est en cours d'examen.",
    "reviewing": "Votre candidature est en cours d'évaluation par notre équipe.",
    "approved": "Félicitations! Votre candidature a été acceptée.",
    "rejected": "Nous regrettons de vous informer que votre candidature n'a pas été retenue.",
}

SERVICE_STATUS_TITLE = "Mise à jour de votre demande de service"
SERVICE_STATUS_MESSAGES = {
    "pending": "Votre demande de service a été reçue et est en attente de traitement.",
    "assigned": "Un technicien a été assigné à votre demande de service.",
    "in_progress": "Votre réparation est en cours.",
    "completed": "Votre réparation est terminée!",
    "cancelled": "Votre demande de service a été annulée.",
}

NEW_REQUEST_TITLE = "Nouvelle demande de service"
NEW_REQUEST_MESSAGE = "Une nouvelle demande de service a été créée et nécessite votre attention."

NEW_MESSAGE_TITLE = "Nouveau message de {sender}"
MESSAGE_PREVIEW_LENGTH = 100


class NotificationDispatcher:
    """
    Best-effort, at-most-once delivery of push and in-app notifications.

    Args:
        config:    Push configuration. A disabled config means no transport.
        transport: The push provider. Ignored when config.enabled is False.
    """

    def __init__(self, config: PushConfig, transport: Optional[PushTransport] = None):
        self.config = config
        self.transport = transport if config.enabled else None

    @property
    def push_enabled(self) -> bool:
        return self.transport is not None

    # ── Token lookup ──────────────────────────────────────────────────────

    async def _tokens_for(self, db: AsyncSession, user_id: str, user_type: str) -> List[str]:
        result = await db.execute(
            select(DeviceToken.token).where(
                DeviceToken.user_id == str(user_id),
                DeviceToken.user_type == user_type,
            )
        )
        return list(result.scalars().all())

    async def _active_technician_tokens(self, db: AsyncSession) -> List[str]:
        result = await db.execute(
            select(DeviceToken.token)
            .join(Technician, DeviceToken.user_id == cast(Technician.id, String))
            .where(
                DeviceToken.user_type == "technician",
                Technician.status == TECHNICIAN_ACTIVE,
            )
        )
        return list(result.scalars().all())

    # ── Delivery ──────────────────────────────────────────────────────────

    async def _push(self, tokens: List[str], message: PushMessage, target: str) -> Optional[DeliveryReport]:
        if self.transport is None:
            logger.info("Push disabled, skipping notification for %s", target)
            return None

        if not tokens:
            logger.info("No device tokens found for %s", target)
            return None

        try:
            report = await self.transport.send_multicast(tokens, message)
        except TransportError as e:
            logger.error("Push delivery to %s failed: %s | Context: %s", target, e.message, e.context)
            return None
        except Exception:
            logger.exception("Unexpected error while pushing to %s", target)
            return None

        if report.failure_count:
            logger.warning(
                "Push to %s partially failed: %d sent, %d failed",
                target,
                report.success_count,
                report.failure_count,
            )
        else:
            logger.info("Push to %s delivered to %d device(s)", target, report.success_count)
        return report

    # ── Domain events ─────────────────────────────────────────────────────

    async def notify_status_change(
        self,
        db: AsyncSession,
        application: TechnicianApplication,
        new_status: str,
    ) -> Optional[DeliveryReport]:
        """
        Tell an applicant that their application changed status.

        Applicants have no account; their devices are registered with
        user_type "applicant" and the application email as user_id.
        """
        email = application.applicant_email
        if not email:
            logger.info("Application %s has no applicant email, skipping push", application.id)
            return None

        target = f"applicant {email}"
        try:
            tokens = await self._tokens_for(db, email.lower(), "applicant")
        except Exception:
            logger.exception("Device token lookup failed for %s", target)
            return None

        message = PushMessage(
            title=APPLICATION_STATUS_TITLE,
            body=APPLICATION_STATUS_MESSAGES.get(
                new_status, f"Le statut de votre candidature est maintenant: {new_status}"
            ),
            data={
                "type": "application_status",
                "application_id": application.id,
                "status": new_status,
            },
        )
        return await self._push(tokens, message, target)

    async def notify_new_request(
        self,
        db: AsyncSession,
        service_request: ServiceRequest,
    ) -> Optional[DeliveryReport]:
        """Broadcast a new service request to active technicians and admins."""
        await self.record(
            db,
            recipient_type="admin",
            recipient_id=None,
            type="new_service_request",
            title=NEW_REQUEST_TITLE,
            message=f"{service_request.device_type}: {service_request.service_type}",
            data={"service_request_id": service_request.id},
            related_entity_type="service_request",
            related_entity_id=service_request.id,
        )

        try:
            tokens = await self._active_technician_tokens(db)
        except Exception:
            logger.exception("Device token lookup failed for active technicians")
            return None

        message = PushMessage(
            title=NEW_REQUEST_TITLE,
            body=NEW_REQUEST_MESSAGE,
            data={"type": "new_service_request", "service_request_id": service_request.id},
        )
        return await self._push(tokens, message, "active technicians")

    async def notify_service_status(
        self,
        db: AsyncSession,
        service_request: ServiceRequest,
        status: str,
    ) -> Optional[DeliveryReport]:
        """Tell a client that their service request changed status."""
        target = f"client {service_request.client_id}"
        try:
            tokens = await self._tokens_for(db, str(service_request.client_id), "client")
        except Exception:
            logger.exception("Device token lookup failed for %s", target)
            return None

        message = PushMessage(
            title=SERVICE_STATUS_TITLE,
            body=SERVICE_STATUS_MESSAGES.get(
                status, f"Le statut de votre demande est maintenant: {status}"
            ),
            data={
                "type": "service_update",
                "service_request_id": service_request.id,
                "status": status,
            },
        )
        return await self._push(tokens, message, target)

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: Any,
        user_type: str,
        message: PushMessage,
    ) -> Optional[DeliveryReport]:
        target = f"{user_type} {user_id}"
        try:
            tokens = await self._tokens_for(db, str(user_id), user_type)
        except Exception:
            logger.exception("Device token lookup failed for %s", target)
            return None
        return await self._push(tokens, message, target)

    async def notify_new_message(
        self,
        db: AsyncSession,
        message: ServiceRequestMessage,
        recipient_id: Any,
        recipient_type: str,
        sender_name: str,
    ) -> Optional[DeliveryReport]:
        """Push a preview of a new message; long content is cut to 100 characters."""
        content = message.content
        if len(content) > MESSAGE_PREVIEW_LENGTH:
            content = content[:MESSAGE_PREVIEW_LENGTH - 3] + "..."

        push = PushMessage(
            title=NEW_MESSAGE_TITLE.format(sender=sender_name),
            body=content,
            data={
                "type": "new_message",
                "message_id": message.id,
                "service_request_id": message.service_request_id,
                "sender_id": message.sender_id,
                "sender_type": message.sender_type,
            },
        )
        return await self.notify_user(db, recipient_id, recipient_type, push)

    # ── In-app notifications ──────────────────────────────────────────────

    async def record(
        self,
        db: AsyncSession,
        recipient_type: str,
        recipient_id: Optional[int],
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = "normal",
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """
        Insert an in-app notification and commit it.

        Only call after the triggering transaction has committed: a failure
        here rolls back the session.
        """
        notification = Notification(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            data=data,
            priority=priority,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        try:
            db.add(notification)
            await db.commit()
        except Exception:
            logger.exception("Failed to record %s notification for %s", type, recipient_type)
            await db.rollback()
            return None

        logger.debug("Recorded notification %s (%s) for %s:%s", notification.id, type, recipient_type, recipient_id)
        return notification
