"""Liveness, readiness and token probes."""

import time

from fastapi import APIRouter, Response, status

from src.api.deps import CurrentUser
from src.core.config import get_settings
from src.core.supabase import check_database_connection
from src.schemas.auth import AuthenticatedResponse
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])


async def _database_check() -> CheckResult:
    started = time.perf_counter()
    result = await check_database_connection()
    return CheckResult(
        name="database",
        healthy=result["healthy"],
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        error=result.get("error"),
    )


def _carrier_check() -> CheckResult:
    # Informational only: orders still confirm without a carrier and admins retry shipments
    configured = get_settings().shiprocket_configured
    return CheckResult(
        name="shipping_carrier",
        healthy=True,
        error=None if configured else "Carrier credentials not configured",
    )


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    """Report that the process is up without touching dependencies."""
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable"}},
    summary="Readiness check",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Probe the database and report carrier configuration; 503 when not ready."""
    checks = [await _database_check(), _carrier_check()]
    ready = all(check.healthy for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        checks=checks,
    )


@router.get("/health/auth", response_model=AuthenticatedResponse, summary="Authenticated health check")
async def authenticated_check(user: CurrentUser) -> AuthenticatedResponse:
    """Echo the caller's resolved identity and role."""
    return AuthenticatedResponse(
        authenticated=True,
        user_id=str(user.user_id),
        email=user.email,
        role=user.role,
    )
