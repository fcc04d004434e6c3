"""API dependencies - authentication and authorization"""

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authgate.schemas.token import Identity
from authgate.services import access_control

# OpenAPI security scheme only; access_control parses the header.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    request: Request,
    _credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """
    Authenticate the request from its bearer token

    The identity comes from the verified access token claims alone; no
    database lookup is made. It is also attached to ``request.state.identity``.

    Args:
        request: Incoming request

    Returns:
        Authenticated identity

    Raises:
        MissingTokenError / MalformedHeaderError: 401, code NO_TOKEN
        TokenExpiredError: 401, code TOKEN_EXPIRED
        TokenInvalidError and subclasses: 403
    """
    identity = access_control.authenticate(request.headers.get("Authorization"))
    request.state.identity = identity
    return identity


def require_role(role: str) -> Callable:
    """Dependency factory: exact role match"""
    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        return access_control.require_role(identity, role)
    return dependency


def require_any_role(*roles: str) -> Callable:
    """Dependency factory: identity role must be one of ``roles``"""
    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        return access_control.require_any_role(identity, roles)
    return dependency


get_current_admin = require_role(access_control.ADMIN_ROLE)
