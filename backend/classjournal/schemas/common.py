"""
ClassJournal Backend - Shared Response Envelopes
=================================================

Every response body carries `success` and a human-readable `message`.
Errors add a machine-readable `error` code, optional `details`, and the
request correlation id.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SuccessResponse(BaseModel):
    """Bare success envelope, e.g. for DELETE /api/journal/{id}."""
    success: bool = Field(default=True)
    message: str = Field(description="Human-readable outcome")


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "success": false,
            "message": "You do not have permission to perform this action. Required role: TEACHER",
            "error": "forbidden",
            "details": {"required_roles": ["TEACHER"], "userRole": "STUDENT"},
            "request_id": "1f2e3d4c"
        }
    """
    success: bool = Field(default=False)
    message: str = Field(description="Human-readable error description")
    error: str = Field(description="Machine-readable error code")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for container and load balancer probes."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
