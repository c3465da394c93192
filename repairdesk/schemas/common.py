"""
RepairDesk Backend - Shared Response Schemas
==============================================

Every successful response is wrapped in `Envelope`:
    {"success": true, "data": ..., "message": "..."}

Errors produced by the global exception handlers follow `ErrorResponse`:
    {"success": false, "error": "not_found", "message": "...", "request_id": "..."}
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable description")
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """
    What:  Health check response.
    Who:   Load balancers and container orchestrators poll GET /health.
    """
    status: str = Field(description="healthy, degraded")
    version: str
    database: str = Field(description="connected, disconnected")
    storage: str = Field(description="writable, not_writable")
    push: str = Field(description="enabled, disabled")
