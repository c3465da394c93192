"""
RepairDesk Backend - Application Record Repository
====================================================

What:  Create, read and status-update operations over technician_applications.
How:   Incoming submissions are validated against ApplicationCreate before any
       row is written. Status changes run a locked read, a transition check and
       a conditional UPDATE in one transaction.
Who:   Application routes and ReviewService.

Status update sequence:
    1. SELECT ... FOR UPDATE      (row lock where the dialect supports it)
    2. check ALLOWED_TRANSITIONS   (InvalidStateTransition otherwise)
    3. UPDATE ... WHERE id = :id AND status = :expected
    4. rowcount == 0               → another writer got there first
                                     → InvalidStateTransition

Moving an application to approved or rejected always goes through
ReviewService, which calls apply_transition() as part of a larger unit.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from repairdesk.exceptions import InvalidStateTransition, NotFoundError, ValidationError
from repairdesk.models.technician_application import (
    ALLOWED_TRANSITIONS,
    APPLICATION_STATUSES,
    STATUS_PENDING,
    TERMINAL_STATUSES,
    TechnicianApplication,
)
from repairdesk.schemas.application import ApplicationCreate

logger = logging.getLogger(__name__)


def validation_error_from(exc: PydanticValidationError) -> ValidationError:
    """Flatten a pydantic error into our ValidationError (first problem wins)."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return ValidationError(
        message=f"Invalid application: {location or 'body'}: {first.get('msg', 'invalid value')}",
        field=location or None,
        context={"errors": [
            {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
            for e in errors
        ]},
    )


class ApplicationService:
    """Repository for technician applications."""

    # ── Create ────────────────────────────────────────────────────────────

    def validate(self, fields: Union[ApplicationCreate, Dict[str, Any]]) -> ApplicationCreate:
        if isinstance(fields, ApplicationCreate):
            return fields
        if not isinstance(fields, dict):
            raise ValidationError(message="Application payload must be an object", field="body")
        try:
            return ApplicationCreate.model_validate(fields)
        except PydanticValidationError as e:
            raise validation_error_from(e)

    async def create_application(
        self,
        db: AsyncSession,
        fields: Union[ApplicationCreate, Dict[str, Any]],
        dispatcher=None,
    ) -> TechnicianApplication:
        """
        Insert a new application with status pending and commit it. When a
        dispatcher is given, admins get an in-app "new application" notice.

        Raises:
            ValidationError: personal info, professional info or documents
                             missing or malformed.
        """
        payload = self.validate(fields)

        now = datetime.now(timezone.utc)
        application = TechnicianApplication(
            personal_info=payload.personal_info.model_dump(mode="json"),
            professional_info=payload.professional_info.model_dump(mode="json"),
            background=payload.background.model_dump(mode="json") if payload.background else None,
            additional_info=(
                payload.additional_info.model_dump(mode="json") if payload.additional_info else None
            ),
            documents=payload.documents.model_dump(mode="json"),
            status=STATUS_PENDING,
            submitted_at=now,
            updated_at=now,
        )
        db.add(application)
        await db.commit()
        logger.info(
            "Application %s submitted by %s (%s)",
            application.id,
            application.applicant_email,
            payload.professional_info.specialization,
        )

        if dispatcher is not None:
            await dispatcher.record(
                db,
                recipient_type="admin",
                recipient_id=None,
                type="new_technician_application",
                title="Nouvelle candidature technicien",
                message=(
                    f"{payload.personal_info.full_name} a soumis une candidature pour "
                    f"{payload.professional_info.specialization}"
                ),
                data={"application_id": application.id},
                priority="high",
                related_entity_type="technician_application",
                related_entity_id=application.id,
            )
        return application

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_applications(
        self, db: AsyncSession, status: Optional[str] = None
    ) -> List[TechnicianApplication]:
        """Newest first; ties broken by id so the order is stable."""
        query = select(TechnicianApplication)
        if status:
            self._check_known_status(status)
            query = query.where(TechnicianApplication.status == status)
        query = query.order_by(
            TechnicianApplication.submitted_at.desc(),
            TechnicianApplication.id.desc(),
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_application(
        self, db: AsyncSession, application_id: int, for_update: bool = False
    ) -> TechnicianApplication:
        query = select(TechnicianApplication).where(TechnicianApplication.id == application_id)
        if for_update:
            # Ignored by SQLite, which serializes writers at the database level
            query = query.with_for_update()
        result = await db.execute(query.execution_options(populate_existing=for_update))
        application = result.scalar_one_or_none()
        if application is None:
            raise NotFoundError(resource="application", resource_id=str(application_id))
        return application

    # ── Status changes ────────────────────────────────────────────────────

    def _check_known_status(self, status: str) -> None:
        if status not in APPLICATION_STATUSES:
            raise ValidationError(
                message=f"Unknown application status '{status}'",
                field="status",
                context={"allowed": list(APPLICATION_STATUSES)},
            )

    def check_transition(self, current: str, requested: str) -> bool:
        """
        Returns True for a real transition, False for a no-op re-assertion of
        the current non-terminal status.

        Raises:
            InvalidStateTransition: terminal current status or a move not in
                                    ALLOWED_TRANSITIONS.
        """
        self._check_known_status(requested)
        allowed = ALLOWED_TRANSITIONS.get(current, frozenset())
        if requested == current and allowed:
            return False
        if requested not in allowed:
            raise InvalidStateTransition(current_status=current, requested_status=requested)
        return True

    async def apply_transition(
        self,
        db: AsyncSession,
        application: TechnicianApplication,
        new_status: str,
        notes: Optional[str] = None,
        technician_id: Optional[int] = None,
    ) -> TechnicianApplication:
        """
        Conditional UPDATE guarded on the status read earlier in this
        transaction. Does not commit.
        """
        expected = application.status
        values: Dict[str, Any] = {
            "status": new_status,
            "updated_at": datetime.now(timezone.utc),
        }
        if notes is not None:
            values["admin_notes"] = notes
        if technician_id is not None:
            values["technician_id"] = technician_id

        result = await db.execute(
            update(TechnicianApplication)
            .where(
                TechnicianApplication.id == application.id,
                TechnicianApplication.status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Application %s changed concurrently (expected status '%s')",
                application.id,
                expected,
            )
            raise InvalidStateTransition(current_status=expected, requested_status=new_status)

        # Mirror the UPDATE on the instance without marking it dirty
        for key, value in values.items():
            set_committed_value(application, key, value)
        return application

    async def link_technician(
        self, db: AsyncSession, application: TechnicianApplication, technician_id: int
    ) -> TechnicianApplication:
        """Point an application claimed earlier in this transaction at its technician."""
        await db.execute(
            update(TechnicianApplication)
            .where(TechnicianApplication.id == application.id)
            .values(technician_id=technician_id)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(application, "technician_id", technician_id)
        return application

    async def update_status(
        self,
        db: AsyncSession,
        application_id: int,
        new_status: str,
        notes: Optional[str] = None,
    ) -> Tuple[TechnicianApplication, bool]:
        """
        Non-terminal status update (pending → reviewing, or a notes-only
        re-assertion of the current status). Does not commit.

        Returns:
            (application, changed) where changed is False for a re-assertion.

        approved/rejected are refused here: they carry extra invariants that
        only ReviewService enforces.
        """
        self._check_known_status(new_status)
        application = await self.get_application(db, application_id, for_update=True)

        if not self.check_transition(application.status, new_status):
            if notes is not None:
                await self.apply_transition(db, application, application.status, notes=notes)
            return application, False

        if new_status in TERMINAL_STATUSES:
            raise ValidationError(
                message=f"Status '{new_status}' can only be set through the review workflow",
                field="status",
            )

        await self.apply_transition(db, application, new_status, notes=notes)
        logger.info("Application %s moved to '%s'", application.id, new_status)
        return application, True


application_service = ApplicationService()
