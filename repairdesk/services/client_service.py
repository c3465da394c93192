"""
RepairDesk Backend - Client Service
=====================================

What:  Admin management of clients and their contacts.
How:   Same transaction rules as TechnicianService: methods flush, the
       request-scoped session commits. Client emails are unique; both the
       up-front check and the unique index raise DuplicateEmailError.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import DuplicateEmailError, NotFoundError, ValidationError
from repairdesk.models.client import Client, ClientContact
from repairdesk.schemas.client import (
    ClientContactCreate,
    ClientContactUpdate,
    ClientCreate,
    ClientUpdate,
)

logger = logging.getLogger(__name__)


class ClientService:

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[Client]:
        result = await db.execute(
            select(Client).where(func.lower(Client.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def _ensure_email_available(
        self, db: AsyncSession, email: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await self.find_by_email(db, email)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateEmailError(email=email, resource="client")

    async def _flush(self, db: AsyncSession, email: str) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Unique constraint violated for client email %s: %s", email, e.orig)
            raise DuplicateEmailError(email=email, resource="client")

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        is_business: Optional[bool] = None,
    ) -> List[Client]:
        """
        Clients, newest first.

        `search` matches name, email, company name or a contact's name or
        email (case-insensitive substring).
        """
        query = select(Client)
        if is_business is not None:
            query = query.where(Client.is_business == is_business)
        if search:
            pattern = f"%{search.strip().lower()}%"
            contact_match = (
                select(ClientContact.client_id)
                .where(
                    or_(
                        func.lower(ClientContact.full_name).like(pattern),
                        func.lower(ClientContact.email).like(pattern),
                    )
                )
            )
            query = query.where(
                or_(
                    func.lower(Client.name).like(pattern),
                    func.lower(Client.email).like(pattern),
                    func.lower(Client.company_name).like(pattern),
                    Client.id.in_(contact_match),
                )
            )
        result = await db.execute(query.order_by(Client.created_at.desc(), Client.id.desc()))
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, client_id: int) -> Client:
        client = await db.get(Client, client_id)
        if client is None:
            raise NotFoundError(resource="client", resource_id=str(client_id))
        return client

    async def create(self, db: AsyncSession, payload: ClientCreate) -> Client:
        await self._ensure_email_available(db, payload.email)
        client = Client(
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            is_business=payload.is_business,
            company_name=payload.company_name,
            contacts=[ClientContact(**c.model_dump()) for c in payload.contacts],
        )
        db.add(client)
        await self._flush(db, client.email)
        await db.refresh(client)
        logger.info("Client %s created (%s, %d contact(s))", client.id, client.email, len(client.contacts))
        return client

    async def update(self, db: AsyncSession, client_id: int, payload: ClientUpdate) -> Client:
        client = await self.get(db, client_id)
        changes = payload.model_dump(exclude_unset=True)

        new_email = changes.get("email")
        if new_email and new_email != client.email:
            await self._ensure_email_available(db, new_email, exclude_id=client.id)

        for field_name, value in changes.items():
            if value is None and field_name in ("name", "email", "is_business"):
                continue
            setattr(client, field_name, value)

        if client.company_name:
            client.is_business = True
        if client.is_business and not client.company_name:
            raise ValidationError(
                message="company_name is required for business clients",
                field="company_name",
            )

        await self._flush(db, client.email)
        await db.refresh(client)
        logger.info("Client %s updated: %s", client.id, sorted(changes))
        return client

    async def delete(self, db: AsyncSession, client_id: int) -> None:
        """Remove a client; its contacts, requests and messages go with it."""
        client = await self.get(db, client_id)
        await db.delete(client)
        await db.flush()
        logger.info("Client %s deleted", client_id)

    # ── Contacts ──────────────────────────────────────────────────────────

    async def get_contact(self, db: AsyncSession, contact_id: int) -> ClientContact:
        contact = await db.get(ClientContact, contact_id)
        if contact is None:
            raise NotFoundError(resource="contact", resource_id=str(contact_id))
        return contact

    async def add_contact(
        self, db: AsyncSession, client_id: int, payload: ClientContactCreate
    ) -> ClientContact:
        client = await self.get(db, client_id)
        contact = ClientContact(client_id=client.id, **payload.model_dump())
        db.add(contact)
        await db.flush()
        await db.refresh(contact)
        logger.info("Contact %s added to client %s", contact.id, client.id)
        return contact

    async def update_contact(
        self, db: AsyncSession, contact_id: int, payload: ClientContactUpdate
    ) -> ClientContact:
        contact = await self.get_contact(db, contact_id)
        for field_name, value in payload.model_dump(exclude_unset=True).items():
            if value is None and field_name in ("full_name", "email", "preferred_contact"):
                continue
            setattr(contact, field_name, value)
        await db.flush()
        await db.refresh(contact)
        return contact

    async def delete_contact(self, db: AsyncSession, contact_id: int) -> None:
        contact = await self.get_contact(db, contact_id)
        await db.delete(contact)
        await db.flush()
        logger.info("Contact %s deleted", contact_id)


client_service = ClientService()
