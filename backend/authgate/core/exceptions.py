"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}
        self.headers: Optional[Dict[str, str]] = None
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "AUTHENTICATION_FAILED",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, status_code=401, code=code, details=details)


class MissingTokenError(AuthenticationError):
    """No Authorization header was sent"""
    def __init__(self):
        super().__init__("No token provided", code="NO_TOKEN")


class MalformedHeaderError(AuthenticationError):
    """Authorization header is not of the form 'Bearer <token>'"""
    def __init__(self):
        super().__init__("Authorization header must be 'Bearer <token>'", code="NO_TOKEN")


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password"""
    def __init__(self):
        super().__init__("Invalid email or password", code="INVALID_CREDENTIALS")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired; clients should refresh"""
    def __init__(self):
        super().__init__("Token has expired", code="TOKEN_EXPIRED")


class TokenRevokedError(AuthenticationError):
    """Refresh token was revoked"""
    def __init__(self):
        super().__init__("Refresh token has been revoked", code="TOKEN_REVOKED")


class UnknownTokenError(AuthenticationError):
    """Refresh token is not known to the registry"""
    def __init__(self):
        super().__init__("Refresh token not recognized", code="TOKEN_UNKNOWN")


class ReuseDetectedError(AuthenticationError):
    """A refresh token was presented after it had been rotated or revoked"""
    def __init__(self):
        super().__init__(
            "Refresh token reuse detected. Please sign in again.",
            code="TOKEN_REUSE_DETECTED"
        )


# Token validity errors that are not recoverable by refreshing
class TokenInvalidError(BaseAPIException):
    """JWT token is malformed or its claims are invalid"""
    def __init__(self, message: str = "Invalid token", code: str = "INVALID_TOKEN"):
        super().__init__(message, status_code=403, code=code)


class InvalidSignatureError(TokenInvalidError):
    """JWT signature or algorithm is not acceptable"""
    def __init__(self):
        super().__init__("Token signature is invalid", code="INVALID_SIGNATURE")


class WrongTokenTypeError(TokenInvalidError):
    """Token of the wrong type was presented"""
    def __init__(self, expected: str):
        super().__init__(f"Expected a {expected} token", code="WRONG_TOKEN_TYPE")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(
        self,
        message: str = "Insufficient permissions",
        code: str = "FORBIDDEN",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, status_code=403, code=code, details=details)


class InsufficientRoleError(AuthorizationError):
    """Authenticated identity lacks the required role"""
    def __init__(self, required: str, actual: str):
        super().__init__(
            f"This endpoint requires {required} role. You have {actual} role.",
            code="INSUFFICIENT_ROLE",
            details={"required_role": required, "actual_role": actual}
        )


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404, code="NOT_FOUND")


class DuplicateEmailError(BaseAPIException):
    """Email already registered"""
    def __init__(self):
        super().__init__("Email already registered", status_code=409, code="CONFLICT")


# System Errors
class InternalVerificationError(BaseAPIException):
    """Token verification could not be completed"""
    def __init__(self, message: str = "Token verification failed"):
        super().__init__(message, status_code=500, code="VERIFICATION_ERROR")


class RegistryUnavailableError(BaseAPIException):
    """Refresh token registry could not be reached or locked in time"""
    def __init__(self, message: str = "Session store temporarily unavailable"):
        super().__init__(message, status_code=503, code="REGISTRY_UNAVAILABLE")


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        retry_after: Optional[int] = None
    ):
        super().__init__(
            message,
            status_code=429,
            code="RATE_LIMITED",
            details={"retry_after": retry_after} if retry_after else None
        )
        if retry_after:
            self.headers = {"Retry-After": str(retry_after)}
