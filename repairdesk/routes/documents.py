"""
RepairDesk Backend - Document Download Route
==============================================

Serves application documents (CV, diplomas, motivation letters) to admins.
Paths are the ones stored in DocumentRef.url after the /api/documents/ prefix.
"""

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from repairdesk.routes.deps import CurrentUser, require_admin
from repairdesk.services.document_service import CONTENT_TYPES, document_service

router = APIRouter(prefix="/api/documents", tags=["Documents"])


@router.get("/{file_path:path}", summary="Download a stored application document")
async def serve_document(
    file_path: str,
    admin: CurrentUser = Depends(require_admin),
) -> FileResponse:
    full_path = document_service.resolve(file_path)
    return FileResponse(
        path=str(full_path),
        media_type=CONTENT_TYPES.get(Path(full_path).suffix.lower(), "application/octet-stream"),
        headers={"Cache-Control": "private, max-age=3600"},
    )
