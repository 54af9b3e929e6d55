"""
PolicyQA API Module

Authentication and request/response models.
"""

from policyqa.api.auth import (
    create_access_token,
    get_current_user,
    require_admin,
    verify_token,
)

__all__ = [
    "create_access_token",
    "get_current_user",
    "require_admin",
    "verify_token",
]
