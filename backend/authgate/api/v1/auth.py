"""Authentication routes"""

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session
from typing import Optional

from authgate.core.database import get_db
from authgate.config import settings
from authgate.schemas.token import (
    Identity,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    TokenPair,
)
from authgate.services.session_service import session_service
from authgate.services.rate_limiter import RateLimit, rate_limiter
from authgate.api.deps import get_current_identity
from authgate.schemas.response import ErrorResponse
from authgate.core.exceptions import RateLimitExceededError

router = APIRouter(responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce(key: str, per_minute: int, per_hour: int, message: str) -> None:
    exhausted = rate_limiter.hit(
        key,
        RateLimit("minute", per_minute, 60),
        RateLimit("hour", per_hour, 3600),
    )
    if exhausted is not None:
        raise RateLimitExceededError(
            f"{message} Limit is {exhausted.limit} per {exhausted.name}.",
            retry_after=rate_limiter.retry_after(key, exhausted),
        )


@router.post("/login", response_model=TokenPair, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate user and return a token pair

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access token, refresh token, token type and access token lifetime
    """
    client_ip = _client_ip(request)
    _enforce(
        f"login:{client_ip}:{credentials.email.strip().lower()}",
        settings.LOGIN_RATE_LIMIT_PER_MINUTE,
        settings.LOGIN_RATE_LIMIT_PER_HOUR,
        "Too many login attempts.",
    )

    return session_service.login(db, credentials.email, credentials.password, ip_address=client_ip)


@router.post("/refresh", response_model=TokenPair)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Rotate a refresh token and return a new token pair

    The presented refresh token is consumed; presenting it again is
    treated as token theft.
    """
    client_ip = _client_ip(request)
    _enforce(
        f"refresh:{client_ip}",
        settings.RATE_LIMIT_PER_MINUTE,
        settings.RATE_LIMIT_PER_HOUR,
        "Too many refresh attempts.",
    )

    return session_service.refresh(db, req.refresh_token, ip_address=client_ip)


@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    db: Session = Depends(get_db)
):
    """
    Logout endpoint - revoke the refresh token

    Always succeeds, whether or not the token was still valid.
    """
    token = body.refresh_token if body else None
    return session_service.logout(db, token, ip_address=_client_ip(request))


@router.get("/me", response_model=Identity)
def get_current_identity_info(
    identity: Identity = Depends(get_current_identity)
):
    """
    Get the identity carried by the bearer token

    Args:
        identity: Current authenticated identity

    Returns:
        Identity claims
    """
    return identity
