"""
Authentication for PolicyQA

JWT bearer-token authentication using python-jose.
The token's ``sub`` claim is the user id and its ``role`` claim gates the
admin endpoints.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from policyqa.config import ADMIN_ROLES
from policyqa.errors import AuthFailure, PermissionDenied

logger = logging.getLogger(__name__)

SECRET_KEY = os.environ.get("SECRET_KEY", "change_this_to_a_secure_secret_key")
ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

security_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a JWT token. Raises AuthFailure on failure."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected bearer token: %s", e)
        raise AuthFailure("Invalid or expired token") from e

    if not payload.get("sub"):
        raise AuthFailure("Token has no subject")
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
) -> dict[str, Any]:
    """Resolve the bearer credential to the token's claims."""
    if credentials is None:
        raise AuthFailure("Missing authorization header")
    return verify_token(credentials.credentials)


async def require_admin(
    user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    """Allow only administrator and HR admin roles through."""
    if user.get("role") not in ADMIN_ROLES:
        logger.warning(
            "User %s with role %s denied admin access", user.get("sub"), user.get("role")
        )
        raise PermissionDenied("Admin or HR admin role required")
    return user
