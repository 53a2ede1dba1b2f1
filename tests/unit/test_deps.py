"""Unit tests for FastAPI dependency injection functions."""

import time
from typing import Any
from unittest.mock import patch
from uuid import UUID

import pytest
from fastapi import HTTPException

from src.api.deps import get_current_user, require_capability
from src.api.middleware.auth import AuthError, AuthErrorCode
from src.api.middleware.error_handler import AuthorizationError
from src.core.roles import Capability, Role
from src.schemas.auth import TokenPayload, UserContext


def _payload(sub: str = "550e8400-e29b-41d4-a716-446655440000", **extra: Any) -> TokenPayload:
    now = int(time.time())
    return TokenPayload(sub=sub, email="test@example.com", role="authenticated", exp=now + 3600, iat=now, **extra)


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_extracts_user_context_correctly(self, mock_decode: Any) -> None:
        """Test get_current_user extracts UserContext from valid token."""
        mock_decode.return_value = _payload(app_metadata={"role": "admin"})

        user = await get_current_user("Bearer valid-token")

        assert isinstance(user, UserContext)
        assert str(user.user_id) == "550e8400-e29b-41d4-a716-446655440000"
        assert user.email == "test@example.com"
        assert user.role is Role.ADMIN
        mock_decode.assert_called_once_with("valid-token")

    @pytest.mark.asyncio
    async def test_raises_401_for_missing_header(self) -> None:
        """Test get_current_user raises 401 when Authorization header is missing."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("")

        assert exc_info.value.status_code == 401
        assert "Authorization header required" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_raises_401_for_invalid_header_format(self) -> None:
        """Test get_current_user raises 401 for invalid header format."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("invalid-token")

        assert exc_info.value.status_code == 401
        assert "Invalid authorization header format" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_raises_401_for_wrong_scheme(self) -> None:
        """Test get_current_user raises 401 for non-Bearer scheme."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Basic some-credentials")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_expired_token(self, mock_decode: Any) -> None:
        """Test get_current_user raises 401 for expired token."""
        mock_decode.side_effect = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer expired-token")

        assert exc_info.value.status_code == 401
        assert "expired" in exc_info.value.detail.lower()

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_non_uuid_subject(self, mock_decode: Any) -> None:
        mock_decode.return_value = _payload(sub="service-account")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer token")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token subject"


class TestRequireCapability:
    """Tests for role-gated dependencies."""

    def _user(self, role: Role) -> UserContext:
        return UserContext(user_id=UUID("550e8400-e29b-41d4-a716-446655440000"), role=role)

    @pytest.mark.asyncio
    async def test_admin_passes_every_gate(self) -> None:
        for capability in Capability:
            user = await require_capability(capability)(self._user(Role.ADMIN))
            assert user.role is Role.ADMIN

    @pytest.mark.asyncio
    async def test_customer_cannot_manage_orders(self) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            await require_capability(Capability.MANAGE_ORDERS)(self._user(Role.CUSTOMER))

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Role customer is not allowed to manage orders"

    @pytest.mark.asyncio
    async def test_marketer_views_but_does_not_manage_coupons(self) -> None:
        marketer = self._user(Role.DIGITAL_MARKETER)

        assert await require_capability(Capability.VIEW_COUPONS)(marketer) is marketer
        with pytest.raises(AuthorizationError):
            await require_capability(Capability.MANAGE_COUPONS)(marketer)
