"""
RepairDesk Backend - Device Token Routes
==========================================

Push token registration. Mobile clients call these on startup and on logout.

    applicant   anonymous, addressed by application email
    client      anonymous, client id plus the email on the client record
    admin       bearer token of that admin
    technician  bearer token of that technician

Removing a token that belongs to an admin or technician needs the owner's
bearer token as well.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.exceptions import AuthenticationError, PermissionDeniedError
from repairdesk.routes.deps import CurrentUser, get_optional_user
from repairdesk.schemas.common import Envelope
from repairdesk.schemas.notification import (
    DeviceTokenRegister,
    DeviceTokenResponse,
    DeviceTokenUnregister,
)
from repairdesk.services.auth_service import ROLE_ADMIN, ROLE_TECHNICIAN
from repairdesk.services.device_token_service import device_token_service

router = APIRouter(prefix="/api/device-tokens", tags=["Device Tokens"])

ACCOUNT_TYPES = (ROLE_ADMIN, ROLE_TECHNICIAN)


def _require_owner(user_type: str, user_id: str, user: Optional[CurrentUser]) -> None:
    if user is None:
        raise AuthenticationError(message=f"Sign in to manage {user_type} device tokens")
    if user.role != user_type or str(user.id) != user_id:
        raise PermissionDeniedError(message="Device tokens can only be managed by their owner")


@router.post("", status_code=201, response_model=Envelope[DeviceTokenResponse])
async def register_device_token(
    payload: DeviceTokenRegister,
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> Envelope[DeviceTokenResponse]:
    if payload.user_type in ACCOUNT_TYPES:
        _require_owner(payload.user_type, payload.user_id, user)
    elif payload.user_type == "client":
        await device_token_service.verify_client(db, payload.user_id, payload.email)

    device = await device_token_service.register(db, payload)
    return Envelope[DeviceTokenResponse](
        data=DeviceTokenResponse.model_validate(device),
        message="Device token registered",
    )


@router.delete("", response_model=Envelope[None])
async def unregister_device_token(
    payload: DeviceTokenUnregister,
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> Envelope[None]:
    device = await device_token_service.get_by_token(db, payload.token)
    if device.user_type in ACCOUNT_TYPES:
        _require_owner(device.user_type, device.user_id, user)

    await device_token_service.unregister(db, payload.token)
    return Envelope[None](message="Device token removed")
