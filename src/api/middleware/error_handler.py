"""Global error handling middleware for consistent error responses."""

import logging
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for errors rendered as an ``ErrorResponse``.

    Subclasses set ``status_code``, ``error_type`` and ``default_message``
    as class attributes; instances only carry the message and details.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "api_error"
    default_message: str = "Request failed"

    def __init__(
        self,
        message: str | None = None,
        details: list[dict[str, Any]] | None = None,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message, defaults to the class message.
            details: Optional field-level details.
            status_code: Overrides the class status code.
            error_type: Overrides the class error category.
        """
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type
        super().__init__(self.message)


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"
    default_message = "Validation error"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"
    default_message = "Authentication required"


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "authorization_error"
    default_message = "Access denied"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"
    default_message = "Resource not found"


class ConflictError(APIError):
    """Request conflicts with the current state of a resource (stock, status, limits)."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"
    default_message = "Conflict"


class ExternalServiceError(APIError):
    """An upstream service (gateway, carrier) failed or timed out.

    ``retryable`` is True when the same request may succeed if repeated,
    e.g. on a timeout or connection reset, and False for a definitive
    rejection by the upstream service. Retryable failures map to 503 with
    a ``Retry-After`` header, rejections to 502.
    """

    error_type = "external_service_error"
    default_message = "Upstream service unavailable"

    def __init__(
        self,
        message: str | None = None,
        retryable: bool = True,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            details=details,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE if retryable else status.HTTP_502_BAD_GATEWAY,
        )
        self.retryable = retryable


RETRY_AFTER_SECONDS = 5


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
    retryable: bool | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.
        retryable: Set only for upstream service failures.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
        retryable=retryable,
    )
    response = JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )
    if retryable:
        response.headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
    return response


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Render domain errors raised by routes and dependencies.

    Unexpected exceptions are logged with their stack trace and returned as
    a generic 500 so internal details never reach the client.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        return await call_next(request)

    except APIError as e:
        retryable = getattr(e, "retryable", None)
        log = logger.error if e.status_code >= 500 else logger.warning
        log(
            "%s %s failed: %s - %s",
            request.method,
            request.url.path,
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code, "retryable": retryable},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
            retryable=retryable,
        )

    except HTTPException as e:
        logger.warning("HTTP exception: %s - %s", e.status_code, e.detail, extra={"request_id": request_id})
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path, extra={"request_id": request_id})
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
