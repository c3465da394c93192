"""
RepairDesk Backend - Route Dependencies
=========================================

Authentication and shared-object dependencies for route handlers.

    get_current_user   → decodes the bearer token (401 when missing/invalid)
    get_optional_user  → same, but None when no token is sent
    require_admin      → admin role only (403 otherwise)
    require_user       → admin or technician
    require_technician → technician role only
    get_dispatcher     → the NotificationDispatcher built at startup
    get_mailer         → the Mailer built at startup
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from repairdesk.exceptions import AuthenticationError, PermissionDeniedError
from repairdesk.services.auth_service import ROLE_ADMIN, ROLE_TECHNICIAN, decode_access_token
from repairdesk.services.email_service import Mailer
from repairdesk.services.notification_dispatcher import NotificationDispatcher

# auto_error=False: a missing header raises our AuthenticationError (401 envelope)
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str
    email: str


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Authentication required")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError(message="Invalid or expired token")

    return CurrentUser(id=user_id, role=payload["role"], email=payload.get("email", ""))


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[CurrentUser]:
    """None for anonymous callers; a bad token is still a 401."""
    if credentials is None or not credentials.credentials:
        return None
    return await get_current_user(credentials)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != ROLE_ADMIN:
        raise PermissionDeniedError(message="Administrator access required")
    return user


async def require_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role not in (ROLE_ADMIN, ROLE_TECHNICIAN):
        raise PermissionDeniedError()
    return user


async def require_technician(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != ROLE_TECHNICIAN:
        raise PermissionDeniedError(message="Technician access required")
    return user


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
