"""
RepairDesk Backend - Technician Application Routes
====================================================

What:  Public submission of technician applications and the admin review
       endpoints (list, fetch, status update, approve, reject).
How:   Handlers parse the request, delegate to ApplicationService /
       ReviewService and wrap the result in the response envelope.

Multipart submission (POST /api/technician-applications):
    data              JSON string: personalInfo, professionalInfo,
                      background, additionalInfo
    cv                required file
    diploma_0..n      optional files
    motivationLetter  optional file
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from repairdesk.database import get_db_session
from repairdesk.exceptions import ValidationError
from repairdesk.routes.deps import CurrentUser, get_dispatcher, get_mailer, require_admin
from repairdesk.schemas.application import (
    ApplicationCreate,
    ApplicationData,
    ApplicationResponse,
    ApprovalResponse,
    ApproveRequest,
    RejectRequest,
    StatusUpdate,
)
from repairdesk.schemas.common import Envelope, ErrorResponse
from repairdesk.schemas.technician import TechnicianResponse
from repairdesk.services.application_service import validation_error_from, application_service
from repairdesk.services.document_service import UploadedFile, document_service
from repairdesk.services.email_service import Mailer
from repairdesk.services.notification_dispatcher import NotificationDispatcher
from repairdesk.services.review_service import review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/technician-applications", tags=["Technician Applications"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    404: {"description": "Application not found", "model": ErrorResponse},
    409: {"description": "Invalid status transition or duplicate email", "model": ErrorResponse},
}


async def _read_upload(value: Any) -> Optional[UploadedFile]:
    if not isinstance(value, UploadFile) or not value.filename:
        return None
    return UploadedFile(
        filename=value.filename,
        content=await value.read(),
        content_type=value.content_type,
    )


def _diploma_sort_key(key: str) -> int:
    suffix = key.rsplit("_", 1)[-1]
    return int(suffix) if suffix.isdigit() else 0


@router.post(
    "",
    status_code=201,
    response_model=Envelope[ApplicationResponse],
    responses=ERROR_RESPONSES,
    summary="Submit a technician application with documents",
)
async def submit_application(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Envelope[ApplicationResponse]:
    form = await request.form()

    raw_data = form.get("data")
    if not isinstance(raw_data, str) or not raw_data.strip():
        raise ValidationError(message="The 'data' field is required", field="data")
    try:
        data = ApplicationData.model_validate(json.loads(raw_data))
    except json.JSONDecodeError:
        raise ValidationError(message="The 'data' field must be valid JSON", field="data")
    except PydanticValidationError as e:
        raise validation_error_from(e)

    diploma_keys = sorted(
        (key for key in form.keys() if key.startswith("diploma_")),
        key=_diploma_sort_key,
    )
    diplomas: List[UploadedFile] = []
    for key in diploma_keys:
        upload = await _read_upload(form.get(key))
        if upload is not None:
            diplomas.append(upload)

    stored = await document_service.store_application_documents(
        cv=await _read_upload(form.get("cv")),
        diplomas=diplomas,
        motivation_letter=await _read_upload(
            form.get("motivationLetter") or form.get("motivation_letter")
        ),
    )

    try:
        application = await application_service.create_application(
            db,
            ApplicationCreate(**data.model_dump(), documents=stored.documents),
            dispatcher=dispatcher,
        )
    except Exception:
        await document_service.cleanup_files(stored.paths)
        raise

    return Envelope[ApplicationResponse](
        data=ApplicationResponse.model_validate(application),
        message="Application submitted successfully",
    )


@router.post(
    "/json",
    status_code=201,
    response_model=Envelope[ApplicationResponse],
    responses=ERROR_RESPONSES,
    summary="Submit a technician application with already-hosted documents",
)
async def submit_application_json(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Envelope[ApplicationResponse]:
    application = await application_service.create_application(db, payload, dispatcher=dispatcher)
    return Envelope[ApplicationResponse](
        data=ApplicationResponse.model_validate(application),
        message="Application submitted successfully",
    )


@router.get(
    "",
    response_model=Envelope[List[ApplicationResponse]],
    responses=ERROR_RESPONSES,
    summary="List applications, newest first",
)
async def list_applications(
    status: Optional[str] = Query(default=None, description="pending, reviewing, approved, rejected"),
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[List[ApplicationResponse]]:
    applications = await application_service.list_applications(db, status=status)
    return Envelope[List[ApplicationResponse]](
        data=[ApplicationResponse.model_validate(a) for a in applications],
    )


@router.get(
    "/{application_id}",
    response_model=Envelope[ApplicationResponse],
    responses=ERROR_RESPONSES,
    summary="Fetch one application",
)
async def get_application(
    application_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ApplicationResponse]:
    application = await application_service.get_application(db, application_id)
    return Envelope[ApplicationResponse](data=ApplicationResponse.model_validate(application))


@router.patch(
    "/{application_id}/status",
    response_model=Envelope[ApplicationResponse],
    responses=ERROR_RESPONSES,
    summary="Generic status update",
)
async def update_status(
    application_id: int,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    mailer: Mailer = Depends(get_mailer),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ApplicationResponse]:
    application = await review_service.change_status(
        db,
        application_id,
        payload.status,
        notes=payload.notes,
        dispatcher=dispatcher,
        mailer=mailer,
    )
    logger.info("Admin %s set application %s to '%s'", admin.id, application_id, payload.status)
    return Envelope[ApplicationResponse](
        data=ApplicationResponse.model_validate(application),
        message=f"Application status updated to {application.status}",
    )


@router.post(
    "/{application_id}/approve",
    response_model=Envelope[ApprovalResponse],
    responses=ERROR_RESPONSES,
    summary="Approve an application and create the technician account",
)
async def approve_application(
    application_id: int,
    payload: Optional[ApproveRequest] = None,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    mailer: Mailer = Depends(get_mailer),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ApprovalResponse]:
    result = await review_service.approve(
        db,
        application_id,
        notes=payload.notes if payload else None,
        dispatcher=dispatcher,
        mailer=mailer,
    )
    logger.info("Admin %s approved application %s", admin.id, application_id)
    return Envelope[ApprovalResponse](
        data=ApprovalResponse(
            application=ApplicationResponse.model_validate(result.application),
            technician=TechnicianResponse.model_validate(result.technician),
            initial_password=result.initial_password,
            email_sent=result.email_sent,
        ),
        message="Application approved and technician account created",
    )


@router.post(
    "/{application_id}/reject",
    response_model=Envelope[ApplicationResponse],
    responses=ERROR_RESPONSES,
    summary="Reject an application with a reason",
)
async def reject_application(
    application_id: int,
    payload: RejectRequest,
    db: AsyncSession = Depends(get_db_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    mailer: Mailer = Depends(get_mailer),
    admin: CurrentUser = Depends(require_admin),
) -> Envelope[ApplicationResponse]:
    application = await review_service.reject(
        db, application_id, payload.notes, dispatcher=dispatcher, mailer=mailer
    )
    logger.info("Admin %s rejected application %s", admin.id, application_id)
    return Envelope[ApplicationResponse](
        data=ApplicationResponse.model_validate(application),
        message="Application rejected",
    )
