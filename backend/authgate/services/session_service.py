"""Session lifecycle: login, refresh with rotation, logout."""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import Counter
from sqlalchemy.orm import Session

from authgate.config import settings
from authgate.core.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    RegistryUnavailableError,
    ReuseDetectedError,
)
from authgate.core.security import token_preview
from authgate.schemas.token import TokenPair
from authgate.services.audit_service import AuditService, audit_service
from authgate.services.token_registry import RefreshTokenRegistry, token_registry
from authgate.services.token_service import TokenService, token_service
from authgate.services.token_verifier import TokenErrorKind, verify_refresh_token
from authgate.services.user_service import UserService, user_service

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "authgate_auth_events_total",
    "Authentication lifecycle events",
    ["event"],
)

LOGOUT_MESSAGE = "Logged out successfully"


class SessionService:
    """Orchestrates credential checks, token issuing and the refresh registry."""

    def __init__(
        self,
        users: UserService,
        tokens: TokenService,
        registry: RefreshTokenRegistry,
        audit: AuditService,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.registry = registry
        self.audit = audit

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        """
        Authenticate credentials and issue a fresh token pair

        Args:
            db: Database session
            email: Email address
            password: Plain text password
            ip_address: Client address for the audit trail

        Returns:
            Token pair

        Raises:
            InvalidCredentialsError: for unknown email and wrong password alike
        """
        try:
            user = self.users.authenticate_user(db, email, password)
        except InvalidCredentialsError:
            AUTH_EVENTS.labels("login_failure").inc()
            raise

        pair = self.tokens.generate_token_pair(db, user)
        AUTH_EVENTS.labels("login_success").inc()
        self.audit.log_event(db, user_id=user.id, action="auth.login", ip_address=ip_address)
        return pair

    def refresh(
        self,
        db: Session,
        refresh_token: str,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        """
        Exchange a live refresh token for a new pair, consuming it

        Args:
            db: Database session
            refresh_token: Refresh token presented by the client
            ip_address: Client address for the audit trail

        Returns:
            New token pair

        Raises:
            ReuseDetectedError: the token was already rotated or lost a
                concurrent rotation; the subject's sessions are revoked
        """
        result = verify_refresh_token(db, refresh_token)
        if result.error is TokenErrorKind.REUSE_DETECTED:
            raise self._reuse_detected(db, result.claims.sub, ip_address)
        claims = result.unwrap()

        # Credential store lookup happens before any registry write.
        user = self.users.get_user_by_id(db, int(claims.sub))
        if user is None or not user.is_active:
            self.registry.revoke(db, claims.jti)
            raise AuthenticationError("User not found or inactive", code="USER_INACTIVE")

        try:
            new_refresh, _ = self.registry.rotate(db, claims.jti, user.id)
        except ReuseDetectedError:
            raise self._reuse_detected(db, claims.sub, ip_address) from None

        AUTH_EVENTS.labels("refresh").inc()
        return self.tokens.build_pair(self.tokens.generate_access_token(user), new_refresh)

    def logout(
        self,
        db: Session,
        refresh_token: Optional[str],
        ip_address: Optional[str] = None,
    ) -> dict:
        """
        Revoke a refresh token; always reports success

        The response never reveals whether the token was valid, already
        revoked or unknown.
        """
        if refresh_token:
            result = verify_refresh_token(db, refresh_token)
            if result.ok:
                try:
                    revoked = self.registry.revoke(db, result.claims.jti)
                except RegistryUnavailableError:
                    logger.error("Logout could not revoke token %s", token_preview(refresh_token))
                    revoked = False
                if revoked:
                    self.audit.log_event(
                        db, user_id=int(result.claims.sub), action="auth.logout", ip_address=ip_address
                    )
            else:
                logger.info("Logout with unusable refresh token (%s)", result.error.value)

        AUTH_EVENTS.labels("logout").inc()
        return {"message": LOGOUT_MESSAGE}

    def _reuse_detected(self, db: Session, subject: str, ip_address: Optional[str]) -> ReuseDetectedError:
        AUTH_EVENTS.labels("reuse_detected").inc()
        logger.warning("Refresh token reuse detected for subject %s", subject)
        revoked = 0
        if settings.REVOKE_ALL_ON_REUSE:
            revoked = self.registry.revoke_all_for_subject(db, subject)
        self.audit.log_event(
            db,
            user_id=int(subject),
            action="auth.refresh_reuse_detected",
            ip_address=ip_address,
            metadata={"revoked_sessions": revoked},
        )
        return ReuseDetectedError()


session_service = SessionService(user_service, token_service, token_registry, audit_service)
