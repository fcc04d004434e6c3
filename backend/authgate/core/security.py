"""Security utilities - password hashing and JWT signing"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Protocol
from jose import jwt
import bcrypt
from authgate.config import settings
import secrets

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenSubject(Protocol):
    """Anything carrying the identity fields placed in an access token"""
    id: Any
    email: str
    role: str
    name: str


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching stored timestamps"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


# Checked against when no user matches, so both login failure paths pay for one bcrypt verify.
DUMMY_PASSWORD_HASH: str = get_password_hash(secrets.token_urlsafe(16))


def generate_jti() -> str:
    """Generate a unique refresh token identifier"""
    return secrets.token_urlsafe(32)


def token_preview(token: Optional[str]) -> str:
    """Short, log-safe prefix of a token"""
    if not token:
        return "null"
    return f"{token[:10]}..."


def _encode(claims: Dict[str, Any], secret: str) -> str:
    return jwt.encode(claims, secret, algorithm=settings.ALGORITHM)


def _time_claims(expires_delta: timedelta, now: Optional[datetime]) -> Dict[str, int]:
    issued = now or datetime.now(timezone.utc)
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=timezone.utc)
    return {
        "iat": int(issued.timestamp()),
        "exp": int((issued + expires_delta).timestamp()),
    }


def create_access_token(
    subject: TokenSubject,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a signed access token for an identity

    Args:
        subject: Identity (id, email, role, name); never includes secrets
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        now: Issue time override

    Returns:
        str: Encoded JWT token
    """
    claims: Dict[str, Any] = {
        "sub": str(subject.id),
        "email": subject.email,
        "role": subject.role,
        "name": subject.name,
        "type": ACCESS_TOKEN_TYPE,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    claims.update(_time_claims(
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        now,
    ))
    return _encode(claims, settings.ACCESS_TOKEN_SECRET)


def create_refresh_token(
    subject_id: Any,
    jti: str,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a signed refresh token carrying only the subject and jti

    Args:
        subject_id: User ID
        jti: Registry key of this token instance
        expires_delta: Token lifetime, defaults to REFRESH_TOKEN_EXPIRE_DAYS
        now: Issue time override

    Returns:
        str: Encoded JWT token
    """
    claims: Dict[str, Any] = {
        "sub": str(subject_id),
        "type": REFRESH_TOKEN_TYPE,
        "jti": jti,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    claims.update(_time_claims(
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        now,
    ))
    return _encode(claims, settings.REFRESH_TOKEN_SECRET)


def refresh_expiry(now: Optional[datetime] = None) -> datetime:
    """Naive UTC expiry timestamp for a refresh token issued now"""
    return (now or utc_now()) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
