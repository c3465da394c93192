"""
RepairDesk Backend - Authentication Routes
============================================

Logins for admins and technicians, and the password change a technician
makes after receiving a temporary password.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from repairdesk.database import get_db_session
from repairdesk.routes.deps import CurrentUser, require_technician
from repairdesk.schemas.auth import ChangePasswordRequest, LoginRequest, TokenResponse
from repairdesk.schemas.common import Envelope, ErrorResponse
from repairdesk.services.auth_service import auth_service

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

LOGIN_RESPONSES = {401: {"description": "Invalid credentials", "model": ErrorResponse}}


@router.post("/admin/login", response_model=Envelope[TokenResponse], responses=LOGIN_RESPONSES)
async def admin_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TokenResponse]:
    token = await auth_service.authenticate_admin(db, payload.email, payload.password)
    return Envelope[TokenResponse](data=token)


@router.post("/technician/login", response_model=Envelope[TokenResponse], responses=LOGIN_RESPONSES)
async def technician_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TokenResponse]:
    token = await auth_service.authenticate_technician(db, payload.email, payload.password)
    return Envelope[TokenResponse](data=token)


@router.post(
    "/technician/change-password",
    response_model=Envelope[None],
    responses={
        400: {"description": "Wrong current password", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Not a technician", "model": ErrorResponse},
    },
)
async def technician_change_password(
    payload: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db_session),
    technician: CurrentUser = Depends(require_technician),
) -> Envelope[None]:
    await auth_service.change_technician_password(
        db, technician.id, payload.current_password, payload.new_password
    )
    return Envelope[None](message="Password changed")
