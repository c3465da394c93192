"""
RepairDesk Backend - Health Check Route
=========================================

What:  Liveness + dependency check for Docker health checks and load balancers.
How:   SELECT 1 against the database, a write-permission check on the storage
       root, and the push transport state.

Status levels:
    healthy   database reachable and storage writable
    degraded  storage not writable (submissions with documents will fail)
    unhealthy database unreachable (HTTP 503)
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from repairdesk import __version__
from repairdesk.database import engine
from repairdesk.schemas.common import HealthResponse
from repairdesk.services.document_service import document_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(request: Request):
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    storage_status = "writable" if document_service.is_writable() else "not_writable"
    if storage_status != "writable" and overall == "healthy":
        overall = "degraded"

    dispatcher = getattr(request.app.state, "dispatcher", None)
    push_status = "enabled" if dispatcher is not None and dispatcher.push_enabled else "disabled"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        push=push_status,
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
