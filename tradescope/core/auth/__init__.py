"""Authentication module."""

from .service import AuthService, get_auth_service
from .security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "AuthService",
    "get_auth_service",
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "decode_access_token",
]
