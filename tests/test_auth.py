"""
Tests for PolicyQA Authentication
"""

from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from policyqa.api.auth import (
    create_access_token,
    get_current_user,
    require_admin,
    verify_token,
)
from policyqa.errors import AuthFailure, PermissionDenied


class TestJWTAuth:
    """Tests for JWT token creation and verification."""

    @pytest.mark.unit
    def test_create_token_returns_string(self):
        token = create_access_token({"sub": "user123", "role": "employee"})
        assert isinstance(token, str)
        assert len(token) > 0

    @pytest.mark.unit
    def test_verify_valid_token(self):
        token = create_access_token({"sub": "user123", "role": "employee"})
        payload = verify_token(token)
        assert payload["sub"] == "user123"
        assert payload["role"] == "employee"
        assert "exp" in payload

    @pytest.mark.unit
    def test_verify_expired_token(self):
        token = create_access_token(
            {"sub": "user123"}, expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(AuthFailure) as exc_info:
            verify_token(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_verify_invalid_token(self):
        with pytest.raises(AuthFailure):
            verify_token("invalid.token.string")

    @pytest.mark.unit
    def test_token_without_subject_rejected(self):
        token = create_access_token({"role": "employee"})
        with pytest.raises(AuthFailure):
            verify_token(token)


class TestAuthDependencies:
    """Tests for the request-level auth dependencies."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(AuthFailure):
            await get_current_user(None)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bearer_credentials_resolve_to_claims(self, user_token):
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=user_token)

        user = await get_current_user(credentials)

        assert user["sub"] == "user-123"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["administrator", "hr_admin"])
    async def test_admin_roles_allowed(self, role):
        user = {"sub": "admin-1", "role": role}
        assert await require_admin(user) is user

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["employee", "manager", None])
    async def test_other_roles_denied(self, role):
        with pytest.raises(PermissionDenied) as exc_info:
            await require_admin({"sub": "user-123", "role": role})
        assert exc_info.value.status_code == 403
