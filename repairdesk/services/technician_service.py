"""
RepairDesk Backend - Technician Service
=========================================

What:  Technician account management for admins, plus the provisioning step
       used when an application is approved.
How:   Methods flush but never commit. The caller owns the transaction: the
       request-scoped session for admin CRUD, ReviewService for approvals.
       Email uniqueness is checked up front and again by the unique index;
       both paths raise DuplicateEmailError.
"""

import logging
import math
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import DuplicateEmailError, NotFoundError, ValidationError
from repairdesk.models.technician import TECHNICIAN_ACTIVE, Technician
from repairdesk.models.technician_application import TechnicianApplication
from repairdesk.schemas.technician import (
    TechnicianCreate,
    TechnicianListResponse,
    TechnicianResponse,
    TechnicianUpdate,
)
from repairdesk.services.auth_service import hash_password

logger = logging.getLogger(__name__)


class TechnicianService:
    """CRUD over the technicians table."""

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[Technician]:
        result = await db.execute(
            select(Technician).where(func.lower(Technician.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def _ensure_email_available(
        self, db: AsyncSession, email: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await self.find_by_email(db, email)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateEmailError(email=email)

    async def _flush(self, db: AsyncSession, email: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same email
            logger.warning("Unique constraint violated for technician email %s: %s", email, e.orig)
            raise DuplicateEmailError(email=email)

    async def provision(
        self,
        db: AsyncSession,
        name: str,
        surname: str,
        email: str,
        password: str,
        phone_number: Optional[str] = None,
        specialization: Optional[str] = None,
        status: str = TECHNICIAN_ACTIVE,
    ) -> Technician:
        """
        Insert a technician inside the caller's transaction.

        Raises:
            DuplicateEmailError: a technician with this email already exists.
        """
        email = email.strip().lower()
        await self._ensure_email_available(db, email)

        technician = Technician(
            name=name,
            surname=surname,
            email=email,
            password_hash=hash_password(password),
            phone_number=phone_number,
            specialization=specialization,
            status=status,
        )
        db.add(technician)
        await self._flush(db, email)
        logger.info("Technician %s created (%s)", technician.id, email)
        return technician

    async def create(self, db: AsyncSession, payload: TechnicianCreate) -> TechnicianResponse:
        technician = await self.provision(
            db,
            name=payload.name,
            surname=payload.surname,
            email=payload.email,
            password=payload.password,
            phone_number=payload.phone_number,
            specialization=payload.specialization,
            status=payload.status,
        )
        return TechnicianResponse.model_validate(technician)

    async def get(self, db: AsyncSession, technician_id: int) -> Technician:
        technician = await db.get(Technician, technician_id)
        if technician is None:
            raise NotFoundError(resource="technician", resource_id=str(technician_id))
        return technician

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> TechnicianListResponse:
        """
        Paginated listing, newest first.

        `search` matches name, surname, email or specialization
        (case-insensitive substring).
        """
        query = select(Technician)
        count_query = select(func.count(Technician.id))

        filters = []
        if search:
            pattern = f"%{search.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(Technician.name).like(pattern),
                    func.lower(Technician.surname).like(pattern),
                    func.lower(Technician.email).like(pattern),
                    func.lower(Technician.specialization).like(pattern),
                )
            )
        if status:
            filters.append(Technician.status == status)

        for condition in filters:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = await db.scalar(count_query) or 0
        result = await db.execute(
            query.order_by(Technician.created_at.desc(), Technician.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        technicians = result.scalars().all()

        return TechnicianListResponse(
            technicians=[TechnicianResponse.model_validate(t) for t in technicians],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    async def update(
        self, db: AsyncSession, technician_id: int, payload: TechnicianUpdate
    ) -> TechnicianResponse:
        technician = await self.get(db, technician_id)
        changes = payload.model_dump(exclude_unset=True)

        password = changes.pop("password", None)
        if password:
            technician.password_hash = hash_password(password)

        new_email = changes.get("email")
        if new_email and new_email != technician.email:
            await self._ensure_email_available(db, new_email, exclude_id=technician.id)

        for field_name, value in changes.items():
            if value is None and field_name in ("name", "email", "status"):
                continue
            setattr(technician, field_name, value)

        await self._flush(db, technician.email)
        await db.refresh(technician)
        logger.info("Technician %s updated: %s", technician.id, sorted(changes))
        return TechnicianResponse.model_validate(technician)

    async def delete(self, db: AsyncSession, technician_id: int) -> None:
        """
        Remove a technician.

        Technicians provisioned by an approval stay linked to their
        application and cannot be deleted; deactivate them instead.
        """
        technician = await self.get(db, technician_id)

        linked = await db.scalar(
            select(func.count(TechnicianApplication.id)).where(
                TechnicianApplication.technician_id == technician.id
            )
        )
        if linked:
            raise ValidationError(
                message=(
                    "This technician was created from an approved application and "
                    "cannot be deleted. Set the status to 'inactive' instead."
                ),
                field="technician_id",
                context={"technician_id": technician.id},
            )

        await db.delete(technician)
        await db.flush()
        logger.info("Technician %s deleted", technician_id)


technician_service = TechnicianService()
