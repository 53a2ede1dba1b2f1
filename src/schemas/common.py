"""Schemas shared by every router: health probes and the error envelope."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.core.clock import utc_now


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=utc_now, description="Check timestamp (UTC)")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Outcome of one dependency probe (database, shipping carrier)."""

    name: str = Field(description="Dependency name")
    healthy: bool = Field(description="Whether the dependency can serve requests")
    latency_ms: float | None = Field(default=None, description="Probe round trip in milliseconds")
    error: str | None = Field(default=None, description="Failure or configuration warning")


class ReadinessResponse(BaseModel):
    """Readiness probe response; 503 when any check is unhealthy."""

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=utc_now, description="Check timestamp (UTC)")
    checks: list[CheckResult] = Field(default_factory=list, description="Individual check results")


class ErrorDetail(BaseModel):
    """Field-level detail attached to an error, e.g. the offending line item."""

    model_config = ConfigDict(from_attributes=True)

    loc: list[str] | None = Field(default=None, description="Location of error (e.g., field path)")
    msg: str = Field(description="Human-readable error message")
    type: str = Field(description="Error type identifier")


class ErrorResponse(BaseModel):
    """Error envelope returned for every domain failure.

    ``retryable`` is only present for upstream (gateway, carrier) failures
    and tells the client whether repeating the same request may succeed.
    """

    error: str = Field(description="Error category, e.g. conflict or external_service_error")
    message: str = Field(description="Human-readable error description")
    retryable: bool | None = Field(default=None, description="Whether an upstream failure is transient")
    details: list[ErrorDetail] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=utc_now, description="Error timestamp (UTC)")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
        retryable: bool | None = None,
    ) -> "ErrorResponse":
        """Build the envelope from an APIError's fields."""
        error_details = None
        if details:
            error_details = [
                ErrorDetail(
                    loc=d.get("loc"),
                    msg=d.get("msg", str(d)),
                    type=d.get("type", "error"),
                )
                for d in details
            ]

        return cls(
            error=error_type,
            message=message,
            retryable=retryable,
            details=error_details,
            request_id=request_id,
        )
