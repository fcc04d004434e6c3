"""Access and refresh token verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from authgate.config import settings
from authgate.core.exceptions import (
    BaseAPIException,
    InternalVerificationError,
    InvalidSignatureError,
    RegistryUnavailableError,
    ReuseDetectedError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
    UnknownTokenError,
    WrongTokenTypeError,
)
from authgate.core.security import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, token_preview
from authgate.schemas.token import AccessClaims, RefreshClaims
from authgate.services.token_registry import token_registry

logger = logging.getLogger(__name__)

ClaimsT = TypeVar("ClaimsT", bound=BaseModel)


class TokenErrorKind(str, Enum):
    """Why a token was rejected"""
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_CLAIMS = "invalid_claims"
    EXPIRED = "expired"
    WRONG_TYPE = "wrong_type"
    REVOKED = "revoked"
    UNKNOWN = "unknown"
    REUSE_DETECTED = "reuse_detected"
    REGISTRY_UNAVAILABLE = "registry_unavailable"
    INTERNAL = "internal"


@dataclass(frozen=True)
class VerificationResult(Generic[ClaimsT]):
    """
    Either verified claims or the reason verification failed.

    Refresh tokens rejected by the registry keep their (cryptographically
    valid) claims so callers can act on the subject, e.g. for reuse handling.
    """

    claims: Optional[ClaimsT] = None
    error: Optional[TokenErrorKind] = None
    expected_type: str = ACCESS_TOKEN_TYPE

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ClaimsT:
        """Return the claims or raise the API error matching the failure kind."""
        if self.error is None and self.claims is not None:
            return self.claims
        raise error_for(self.error or TokenErrorKind.INTERNAL, self.expected_type)


def error_for(kind: TokenErrorKind, expected_type: str = ACCESS_TOKEN_TYPE) -> BaseAPIException:
    if kind is TokenErrorKind.EXPIRED:
        return TokenExpiredError()
    if kind is TokenErrorKind.INVALID_SIGNATURE:
        return InvalidSignatureError()
    if kind is TokenErrorKind.WRONG_TYPE:
        return WrongTokenTypeError(expected_type)
    if kind is TokenErrorKind.MALFORMED:
        return TokenInvalidError()
    if kind is TokenErrorKind.INVALID_CLAIMS:
        return TokenInvalidError("Token claims are invalid")
    if kind is TokenErrorKind.REVOKED:
        return TokenRevokedError()
    if kind is TokenErrorKind.UNKNOWN:
        return UnknownTokenError()
    if kind is TokenErrorKind.REUSE_DETECTED:
        return ReuseDetectedError()
    if kind is TokenErrorKind.REGISTRY_UNAVAILABLE:
        return RegistryUnavailableError()
    return InternalVerificationError()


def _decode(
    token: str,
    secret: str,
    expected_type: str,
    schema: Type[ClaimsT],
) -> VerificationResult[ClaimsT]:
    def fail(kind: TokenErrorKind) -> VerificationResult[ClaimsT]:
        logger.warning(
            "%s token verification failed: %s (token=%s)",
            expected_type, kind.value, token_preview(token),
        )
        return VerificationResult(error=kind, expected_type=expected_type)

    if not token or not isinstance(token, str):
        return fail(TokenErrorKind.MALFORMED)

    # Structure first, so signature failures are not confused with garbage input.
    try:
        header = jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError:
        return fail(TokenErrorKind.MALFORMED)

    # Only the configured algorithm is accepted; "none" and algorithm swaps never reach verification.
    if header.get("alg") != settings.ALGORITHM:
        return fail(TokenErrorKind.INVALID_SIGNATURE)

    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError:
        return fail(TokenErrorKind.EXPIRED)
    except JWTClaimsError:
        return fail(TokenErrorKind.INVALID_CLAIMS)
    except JWTError:
        return fail(TokenErrorKind.INVALID_SIGNATURE)

    if payload.get("type") != expected_type:
        return fail(TokenErrorKind.WRONG_TYPE)

    try:
        claims = schema.model_validate(payload)
    except ValidationError:
        return fail(TokenErrorKind.MALFORMED)

    return VerificationResult(claims=claims, expected_type=expected_type)


def verify_access_token(token: str) -> VerificationResult[AccessClaims]:
    """
    Verify an access token's signature and claims.

    Stateless: no registry or database access.

    Args:
        token: Encoded JWT

    Returns:
        VerificationResult holding AccessClaims or the failure kind
    """
    try:
        return _decode(token, settings.ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TYPE, AccessClaims)
    except Exception:
        logger.exception("Unexpected error verifying access token")
        return VerificationResult(error=TokenErrorKind.INTERNAL, expected_type=ACCESS_TOKEN_TYPE)


def verify_refresh_token(db: Session, token: str) -> VerificationResult[RefreshClaims]:
    """
    Verify a refresh token cryptographically and against the registry.

    A token whose registry entry was rotated away reports REUSE_DETECTED;
    one revoked at logout reports REVOKED.

    Args:
        db: Database session
        token: Encoded JWT

    Returns:
        VerificationResult holding RefreshClaims or the failure kind
    """
    try:
        result = _decode(token, settings.REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TYPE, RefreshClaims)
    except Exception:
        logger.exception("Unexpected error verifying refresh token")
        return VerificationResult(error=TokenErrorKind.INTERNAL, expected_type=REFRESH_TOKEN_TYPE)
    if not result.ok:
        return result

    claims = result.claims
    try:
        record = token_registry.get(db, claims.jti)
    except RegistryUnavailableError:
        logger.error("Registry lookup failed for refresh token %s", token_preview(token))
        return VerificationResult(
            claims=claims, error=TokenErrorKind.REGISTRY_UNAVAILABLE, expected_type=REFRESH_TOKEN_TYPE
        )

    kind: Optional[TokenErrorKind] = None
    if record is None or str(record.user_id) != claims.sub:
        kind = TokenErrorKind.UNKNOWN
    elif record.revoked and record.rotated:
        kind = TokenErrorKind.REUSE_DETECTED
    elif record.revoked:
        kind = TokenErrorKind.REVOKED

    if kind is not None:
        logger.warning(
            "refresh token rejected by registry: %s (subject=%s, token=%s)",
            kind.value, claims.sub, token_preview(token),
        )
        return VerificationResult(claims=claims, error=kind, expected_type=REFRESH_TOKEN_TYPE)
    return result
