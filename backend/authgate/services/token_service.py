"""Token issuing: access tokens, registered refresh tokens and token pairs."""

from __future__ import annotations

import logging
from typing import Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authgate.config import settings
from authgate.core.exceptions import RegistryUnavailableError
from authgate.core.security import (
    TokenSubject,
    create_access_token,
    create_refresh_token,
    generate_jti,
    refresh_expiry,
    utc_now,
)
from authgate.schemas.token import TokenPair
from authgate.services.token_registry import RefreshTokenRegistry, token_registry

logger = logging.getLogger(__name__)


class TokenService:
    """Mint access tokens and registry-backed refresh tokens."""

    def __init__(self, registry: RefreshTokenRegistry) -> None:
        self.registry = registry

    @staticmethod
    def generate_access_token(identity: TokenSubject) -> str:
        return create_access_token(identity)

    def generate_refresh_token(self, db: Session, identity: TokenSubject) -> Tuple[str, str]:
        """
        Sign a refresh token and commit its registry entry.

        The token is only returned once the entry is committed, so a token
        never exists without a registry row and vice versa.

        Returns:
            (refresh token, jti)
        """
        issued_at = utc_now()
        jti = generate_jti()
        token = create_refresh_token(identity.id, jti, now=issued_at)
        try:
            self.registry.create(db, jti, identity.id, expires_at=refresh_expiry(issued_at))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to register refresh token for user %s: %s", identity.id, exc)
            raise RegistryUnavailableError() from exc
        return token, jti

    def generate_token_pair(self, db: Session, identity: TokenSubject) -> TokenPair:
        access_token = self.generate_access_token(identity)
        refresh_token, _ = self.generate_refresh_token(db, identity)
        return self.build_pair(access_token, refresh_token)

    @staticmethod
    def build_pair(access_token: str, refresh_token: str) -> TokenPair:
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=settings.access_token_ttl_seconds,
        )


token_service = TokenService(token_registry)
