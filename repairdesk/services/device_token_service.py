"""
RepairDesk Backend - Device Token Registry
============================================

Push tokens per (user_id, user_type). A token belongs to exactly one user:
registering a token that is already known moves it to the new owner, which
happens when a phone changes hands or a user logs into another account.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.exceptions import NotFoundError, PermissionDeniedError
from repairdesk.models.client import Client
from repairdesk.models.device_token import DeviceToken
from repairdesk.schemas.notification import DeviceTokenRegister

logger = logging.getLogger(__name__)


class DeviceTokenService:

    async def register(self, db: AsyncSession, payload: DeviceTokenRegister) -> DeviceToken:
        result = await db.execute(select(DeviceToken).where(DeviceToken.token == payload.token))
        device = result.scalar_one_or_none()

        if device is None:
            device = DeviceToken(
                user_id=payload.user_id,
                user_type=payload.user_type,
                token=payload.token,
                platform=payload.platform,
            )
            db.add(device)
        else:
            device.user_id = payload.user_id
            device.user_type = payload.user_type
            device.platform = payload.platform or device.platform

        await db.flush()
        logger.info("Device token registered for %s:%s", payload.user_type, payload.user_id)
        return device

    async def get_by_token(self, db: AsyncSession, token: str) -> DeviceToken:
        result = await db.execute(select(DeviceToken).where(DeviceToken.token == token))
        device = result.scalar_one_or_none()
        if device is None:
            raise NotFoundError(resource="device token")
        return device

    async def verify_client(self, db: AsyncSession, client_id: str, email: Optional[str]) -> Client:
        """
        Clients have no login: a token is accepted for a client id only with
        the email that client record carries.

        Raises:
            PermissionDeniedError: unknown client or mismatching email.
        """
        client = await db.get(Client, int(client_id)) if client_id.isdigit() else None
        if client is None or not email or client.email.lower() != email.strip().lower():
            logger.warning("Refused device token registration for client %s", client_id)
            raise PermissionDeniedError(message="Client identity could not be verified")
        return client

    async def unregister(self, db: AsyncSession, token: str) -> None:
        result = await db.execute(
            delete(DeviceToken)
            .where(DeviceToken.token == token)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(resource="device token")
        logger.info("Device token unregistered")

    async def tokens_for(self, db: AsyncSession, user_id: str, user_type: str) -> List[DeviceToken]:
        result = await db.execute(
            select(DeviceToken).where(
                DeviceToken.user_id == str(user_id),
                DeviceToken.user_type == user_type,
            )
        )
        return list(result.scalars().all())


device_token_service = DeviceTokenService()
