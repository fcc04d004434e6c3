"""
Authentication and authorization checks as plain functions.

Each check either returns (the request continues with the returned value)
or raises a BaseAPIException (the request is answered with that error).
The FastAPI dependencies in authgate.api.deps are thin wrappers around these.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from authgate.core.exceptions import (
    AuthorizationError,
    InsufficientRoleError,
    MalformedHeaderError,
    MissingTokenError,
)
from authgate.schemas.token import Identity
from authgate.services.token_verifier import verify_access_token

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"
ADMIN_ROLE = "admin"


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    The scheme is case-sensitive and exactly one space separates it from a
    single non-empty token.
    """
    if authorization is None or authorization == "":
        raise MissingTokenError()
    scheme, sep, token = authorization.partition(" ")
    if scheme != BEARER_SCHEME or not sep or not token or " " in token:
        raise MalformedHeaderError()
    return token


def authenticate(authorization: Optional[str]) -> Identity:
    """Resolve the identity behind an Authorization header value."""
    token = extract_bearer_token(authorization)
    claims = verify_access_token(token).unwrap()
    return claims.to_identity()


def require_role(identity: Identity, role: str) -> Identity:
    if identity.role != role:
        logger.info("Role check failed for user %s: requires %s, has %s", identity.id, role, identity.role)
        raise InsufficientRoleError(role, identity.role)
    return identity


def require_any_role(identity: Identity, roles: Iterable[str]) -> Identity:
    allowed = list(roles)
    if identity.role not in allowed:
        logger.info("Role check failed for user %s: requires one of %s, has %s", identity.id, allowed, identity.role)
        raise InsufficientRoleError(", ".join(allowed), identity.role)
    return identity


def require_owner_or_admin(identity: Identity, owner_id: Any) -> Identity:
    """Allow the resource owner, or any admin."""
    if str(identity.id) == str(owner_id) or identity.role == ADMIN_ROLE:
        return identity
    raise AuthorizationError("You can only access your own resources", code="NOT_OWNER")
