"""Pydantic schemas for request/response validation"""

from authgate.schemas.user import UserCreate, UserResponse, UserRole
from authgate.schemas.token import (
    Identity,
    AccessClaims,
    RefreshClaims,
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    TokenPair,
    MessageResponse,
)
from authgate.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "UserCreate", "UserResponse", "UserRole",
    "Identity", "AccessClaims", "RefreshClaims",
    "LoginRequest", "RefreshTokenRequest", "LogoutRequest", "TokenPair", "MessageResponse",
    "ErrorResponse", "HealthResponse",
]
