"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError
from src.core.roles import Capability
from src.schemas.auth import UserContext


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(parts[1])
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUser = Annotated[UserContext, Depends(get_current_user)]


def require_capability(capability: Capability):
    """Build a dependency that admits only users whose role grants ``capability``.

    Args:
        capability: The capability the route needs.

    Returns:
        Callable: FastAPI dependency returning the authorized user.
    """

    async def dependency(user: CurrentUser) -> UserContext:
        if not user.can(capability):
            raise AuthorizationError(f"Role {user.role.value} is not allowed to {capability.value.replace('_', ' ')}")
        return user

    return dependency


Customer = Annotated[UserContext, Depends(require_capability(Capability.PLACE_ORDERS))]
OrderAdmin = Annotated[UserContext, Depends(require_capability(Capability.MANAGE_ORDERS))]
ReturnAdmin = Annotated[UserContext, Depends(require_capability(Capability.MANAGE_RETURNS))]
CouponAdmin = Annotated[UserContext, Depends(require_capability(Capability.MANAGE_COUPONS))]
CouponViewer = Annotated[UserContext, Depends(require_capability(Capability.VIEW_COUPONS))]
PaymentViewer = Annotated[UserContext, Depends(require_capability(Capability.VIEW_PAYMENTS))]
