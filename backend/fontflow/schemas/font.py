"""
FontFlow Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between frontend and backend.
How:   FastAPI uses these models to serialize responses and generate the
       OpenAPI documentation.
Who:   Used by route handlers as return types and by FontService to build them.

Schemas are separate from the SQLAlchemy model: storage keys are internal and
are exposed only together with short-lived signed URLs.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Response Models — What the API returns to clients
# ══════════════════════════════════════════════════════════════════════════


class FontAssetResponse(BaseModel):
    """
    What:  Full representation of an uploaded font.
    Who:   Returned by upload, list and detail endpoints.

    preview_url / woff2_url are signed, time-limited download links.
    woff2_url is null when no WOFF2 variant exists.
    """
    id: uuid.UUID = Field(description="Unique font identifier (UUID)")
    name: str = Field(description="Original upload filename")
    family: str = Field(default="", description="Font family name (name ID 1)")
    full_name: str = Field(default="", description="Full font name (name ID 4)")
    postscript_name: str = Field(default="", description="PostScript name (name ID 6)")
    style: str = Field(default="", description="Subfamily, e.g. Regular, Bold Italic")
    weight: int = Field(default=400, description="OS/2 usWeightClass")
    manufacturer: str = Field(default="")
    designer: str = Field(default="")
    version: str = Field(default="")
    copyright: str = Field(default="")
    description: str = Field(default="")
    license: str = Field(default="")
    original_file: str = Field(description="Storage key of the uploaded binary")
    woff2_file: Optional[str] = Field(
        default=None,
        description="Storage key of the WOFF2 variant (null when conversion failed)",
    )
    created_at: datetime = Field(description="Upload time (UTC ISO 8601)")
    preview_url: Optional[str] = Field(
        default=None,
        description="Signed URL of the preferred web variant (WOFF2, else original)",
    )
    woff2_url: Optional[str] = Field(default=None, description="Signed URL of the WOFF2 variant")

    model_config = {"from_attributes": True}


class UploadResponse(BaseModel):
    """
    What:  Response after a font was stored and recorded.
    Who:   Returned by POST /api/fonts/upload with HTTP 201 Created.

    `warning` is set when the upload succeeded without a WOFF2 variant.
    """
    message: str = Field(default="Font uploaded successfully")
    font: FontAssetResponse = Field(description="The created font record")
    warning: Optional[str] = Field(default=None, description="Non-fatal processing notice")


class FontListResponse(BaseModel):
    fonts: List[FontAssetResponse] = Field(description="The caller's fonts, newest first")
    total_count: int = Field(description="Number of fonts returned")


class DeleteResponse(BaseModel):
    message: str = Field(default="Font deleted successfully")
    id: uuid.UUID = Field(description="Identifier of the deleted font")


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models — Consistent error format across all endpoints
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "unsupported_format", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "corrupt_font",
            "message": "The uploaded TTF font is damaged and could not be parsed.",
            "details": {"field": "font", "detected_format": "ttf"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="Object storage status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
