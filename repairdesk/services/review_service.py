"""
RepairDesk Backend - Review Workflow Controller
=================================================

What:  Admin decisions on technician applications: approve, reject, and move
       to reviewing.
How:   Each decision is one transaction owned by this service:

           lock row → check transition → conditional UPDATE (claim) →
           [create technician → link it] → commit

       Any failure rolls the whole unit back, so an application is never left
       half-approved (approved without a technician, or a technician without
       an approved application). Notifications and the applicant email
       (temporary password or rejection reason) go out only after the commit
       and can never change the outcome.
Who:   Application routes (approve, reject, generic status PATCH).

Concurrent approvals of the same application: one wins. The loser either
reads a terminal status, or its conditional UPDATE matches no row once the
winner commits (SQLite ignores FOR UPDATE and serializes the two writers at
that UPDATE instead). Both raise InvalidStateTransition before the loser
inserts a technician.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import ValidationError
from repairdesk.models.technician import Technician
from repairdesk.models.technician_application import (
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_REVIEWING,
    TechnicianApplication,
)
from repairdesk.services.application_service import application_service
from repairdesk.services.auth_service import generate_password
from repairdesk.services.push_transport import DeliveryReport
from repairdesk.services.technician_service import technician_service

logger = logging.getLogger(__name__)

WELCOME_TITLE = "Bienvenue dans l'équipe"
WELCOME_MESSAGE = (
    "Votre candidature a été acceptée et votre compte technicien est actif. "
    "Vous pouvez maintenant vous connecter."
)


@dataclass
class ApprovalResult:
    application: TechnicianApplication
    technician: Technician
    initial_password: str
    delivery: Optional[DeliveryReport] = None
    email_sent: bool = False


def split_full_name(full_name: str) -> Tuple[str, str]:
    """'Jean Pierre Dupont' → ('Jean', 'Pierre Dupont'); surname may be empty."""
    parts = (full_name or "").strip().split(" ", 1)
    name = parts[0]
    surname = parts[1].strip() if len(parts) > 1 else ""
    return name, surname


class ReviewService:
    """Approve / reject / review state changes with post-commit dispatch."""

    async def _dispatch_status(
        self,
        db: AsyncSession,
        dispatcher,
        application: TechnicianApplication,
        status: str,
    ) -> Optional[DeliveryReport]:
        if dispatcher is None:
            return None
        try:
            return await dispatcher.notify_status_change(db, application, status)
        except Exception:
            logger.exception(
                "Status notification for application %s (%s) failed", application.id, status
            )
            return None

    async def _welcome(self, db: AsyncSession, dispatcher, technician: Technician) -> None:
        if dispatcher is None:
            return
        try:
            await dispatcher.record(
                db,
                recipient_type="technician",
                recipient_id=technician.id,
                type="welcome",
                title=WELCOME_TITLE,
                message=WELCOME_MESSAGE,
                related_entity_type="technician",
                related_entity_id=technician.id,
            )
        except Exception:
            logger.exception("Welcome notification for technician %s failed", technician.id)

    async def _email(self, mailer, method: str, *args) -> bool:
        if mailer is None:
            return False
        try:
            return await getattr(mailer, method)(*args)
        except Exception:
            logger.exception("Applicant email (%s) failed", method)
            return False

    async def approve(
        self,
        db: AsyncSession,
        application_id: int,
        notes: Optional[str] = None,
        dispatcher=None,
        mailer=None,
    ) -> ApprovalResult:
        """
        Approve an application and provision its technician account.

        Raises:
            NotFoundError:           no such application
            InvalidStateTransition:  already approved/rejected, or lost a race
            DuplicateEmailError:     a technician already uses the applicant's email
        """
        try:
            application = await application_service.get_application(
                db, application_id, for_update=True
            )
            application_service.check_transition(application.status, STATUS_APPROVED)

            # Claim the row before provisioning: a concurrent approval that
            # read the same status now matches no row and never reaches the
            # technician insert.
            await application_service.apply_transition(
                db, application, STATUS_APPROVED, notes=notes
            )

            personal = application.personal_info or {}
            professional = application.professional_info or {}
            name, surname = split_full_name(personal.get("full_name", ""))
            initial_password = generate_password()

            technician = await technician_service.provision(
                db,
                name=name,
                surname=surname,
                email=personal.get("email", ""),
                password=initial_password,
                phone_number=personal.get("phone"),
                specialization=professional.get("specialization"),
            )
            await application_service.link_technician(db, application, technician.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Application %s approved, technician %s provisioned",
            application.id,
            technician.id,
        )

        delivery = await self._dispatch_status(db, dispatcher, application, STATUS_APPROVED)
        await self._welcome(db, dispatcher, technician)
        email_sent = await self._email(
            mailer,
            "send_temporary_password",
            technician.email,
            technician.name,
            technician.surname,
            initial_password,
        )
        return ApprovalResult(
            application=application,
            technician=technician,
            initial_password=initial_password,
            delivery=delivery,
            email_sent=email_sent,
        )

    async def reject(
        self,
        db: AsyncSession,
        application_id: int,
        notes: Optional[str],
        dispatcher=None,
        mailer=None,
    ) -> TechnicianApplication:
        """
        Reject an application. A non-empty reason is mandatory.

        Raises:
            ValidationError:         notes empty after stripping (nothing changed)
            NotFoundError:           no such application
            InvalidStateTransition:  already approved/rejected, or lost a race
        """
        reason = (notes or "").strip()
        if not reason:
            raise ValidationError(
                message="A rejection reason is required",
                field="notes",
            )

        try:
            application = await application_service.get_application(
                db, application_id, for_update=True
            )
            application_service.check_transition(application.status, STATUS_REJECTED)
            await application_service.apply_transition(
                db, application, STATUS_REJECTED, notes=reason
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Application %s rejected", application.id)
        await self._dispatch_status(db, dispatcher, application, STATUS_REJECTED)
        if application.applicant_email:
            name, surname = split_full_name((application.personal_info or {}).get("full_name", ""))
            await self._email(
                mailer,
                "send_application_rejection",
                application.applicant_email,
                name,
                surname,
                reason,
            )
        return application

    async def change_status(
        self,
        db: AsyncSession,
        application_id: int,
        new_status: str,
        notes: Optional[str] = None,
        dispatcher=None,
        mailer=None,
    ) -> TechnicianApplication:
        """
        Generic status update. approved/rejected are routed through
        approve()/reject() so their invariants always hold.
        """
        if new_status == STATUS_APPROVED:
            result = await self.approve(
                db, application_id, notes=notes, dispatcher=dispatcher, mailer=mailer
            )
            return result.application
        if new_status == STATUS_REJECTED:
            return await self.reject(db, application_id, notes, dispatcher=dispatcher, mailer=mailer)

        try:
            application, changed = await application_service.update_status(
                db, application_id, new_status, notes=notes
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if changed:
            await self._dispatch_status(db, dispatcher, application, new_status)
        return application

    async def mark_reviewing(
        self,
        db: AsyncSession,
        application_id: int,
        notes: Optional[str] = None,
        dispatcher=None,
    ) -> TechnicianApplication:
        return await self.change_status(
            db, application_id, STATUS_REVIEWING, notes=notes, dispatcher=dispatcher
        )


review_service = ReviewService()
