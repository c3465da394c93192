"""
RepairDesk Backend - Document Storage Service
===============================================

What:  Validates and stores the documents attached to a technician application
       (CV, diplomas, motivation letter) and serves them back to admins.
How:   Extension and size checks, then an async write with aiofiles to a
       date-organized directory under a UUID filename. The database only keeps
       a DocumentRef (url + metadata), never the file itself.
Who:   Called by the application routes before ApplicationService persists the
       submission; the documents route resolves stored paths for download.

Directory Structure:
    storage/
    └── applications/
        └── 2026/
            └── 10/
                └── 19/
                    ├── 0b8e...-41d2.pdf
                    └── 9c1f...-77aa.jpg

Stored files are only reachable through GET /api/documents/{path}, which
requires an admin token and refuses paths that escape the storage root.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles

from repairdesk.config import settings
from repairdesk.exceptions import FileStorageError, NotFoundError, ValidationError
from repairdesk.schemas.application import DocumentRef, Documents

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".png", ".jpg", ".jpeg"}

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

DOCUMENTS_URL_PREFIX = "/api/documents"


@dataclass
class UploadedFile:
    """An uploaded file already read into memory by the route."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class StoredDocuments:
    """Result of storing a submission's files; `paths` is used for cleanup."""
    documents: Documents
    paths: List[str] = field(default_factory=list)


class DocumentService:
    """
    Manages the validation, storage and lookup of application documents.

    Every public method works on paths relative to the storage root, so the
    root can move between environments without touching stored references.
    """

    SUBDIRECTORY = "applications"

    def __init__(self, storage_root: Optional[str] = None, max_size: Optional[int] = None):
        """
        Args:
            storage_root: Override settings.storage_root (used in tests).
            max_size:     Override settings.max_document_size in bytes.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.max_size = max_size or settings.max_document_size
        logger.info("DocumentService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str, field_name: str = "file") -> str:
        """Returns the lowercase extension or raises ValidationError."""
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported for {field_name}. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field=field_name,
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, size: int, field_name: str = "file") -> None:
        """Rejects empty files and files above the configured maximum."""
        if size == 0:
            raise ValidationError(
                message=f"The uploaded {field_name} is empty.",
                field=field_name,
            )

        if size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(
                message=(
                    f"The uploaded {field_name} ({size / (1024 * 1024):.1f}MB) "
                    f"exceeds the maximum of {max_mb:.0f}MB."
                ),
                field=field_name,
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        now = datetime.now(timezone.utc)
        relative_path = f"{self.SUBDIRECTORY}/{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, upload: UploadedFile, field_name: str = "file") -> Tuple[str, DocumentRef]:
        """
        Validate one upload and write it to disk.

        Returns:
            (absolute_path, DocumentRef)

        Raises:
            ValidationError: unsupported extension, empty or oversized file
            FileStorageError: the write failed
        """
        ext = self.validate_extension(upload.filename, field_name)
        self.validate_size(len(upload.content), field_name)

        absolute_path, relative_path = self._generate_storage_path(ext)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(upload.content)
        except OSError as e:
            logger.error("Failed to store document at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save the uploaded document. Please try again.",
                context={"path": relative_path, "os_error": str(e)},
            )

        logger.info("Document stored: %s (%d bytes)", relative_path, len(upload.content))
        return str(absolute_path), DocumentRef(
            url=f"{DOCUMENTS_URL_PREFIX}/{relative_path}",
            filename=Path(upload.filename).name,
            content_type=upload.content_type or CONTENT_TYPES[ext],
            size=len(upload.content),
        )

    async def store_application_documents(
        self,
        cv: Optional[UploadedFile],
        diplomas: Optional[List[UploadedFile]] = None,
        motivation_letter: Optional[UploadedFile] = None,
    ) -> StoredDocuments:
        """
        Store every document of one submission.

        The CV is mandatory. If any file fails, the files already written for
        this submission are removed before the error propagates.
        """
        if cv is None:
            raise ValidationError(message="A CV document is required.", field="cv")

        stored_paths: List[str] = []
        try:
            path, cv_ref = await self.store_file(cv, "cv")
            stored_paths.append(path)

            diploma_refs = []
            for index, diploma in enumerate(diplomas or []):
                path, ref = await self.store_file(diploma, f"diploma_{index}")
                stored_paths.append(path)
                diploma_refs.append(ref)

            letter_ref = None
            if motivation_letter is not None:
                path, letter_ref = await self.store_file(motivation_letter, "motivationLetter")
                stored_paths.append(path)
        except Exception:
            await self.cleanup_files(stored_paths)
            raise

        return StoredDocuments(
            documents=Documents(cv=cv_ref, diplomas=diploma_refs, motivation_letter=letter_ref),
            paths=stored_paths,
        )

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort removal of a stored file. Failures are logged."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up document: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up document %s: %s", file_path, str(e))

    async def cleanup_files(self, file_paths: List[str]) -> None:
        for file_path in file_paths:
            await self.cleanup_file(file_path)

    # ── Lookup ────────────────────────────────────────────────────────────

    def resolve(self, relative_path: str) -> Path:
        """
        Map a stored relative path back to a file on disk.

        Raises NotFoundError for missing files and for paths that resolve
        outside the storage root.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root) or not candidate.is_file():
            raise NotFoundError(resource="document", resource_id=relative_path)
        return candidate

    def is_writable(self) -> bool:
        return os.access(self.storage_root, os.W_OK)


document_service = DocumentService()
