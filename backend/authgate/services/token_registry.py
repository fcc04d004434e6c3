"""Refresh token registry: revocation and single-use rotation state."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authgate.core.exceptions import RegistryUnavailableError, ReuseDetectedError
from authgate.core.security import create_refresh_token, generate_jti, refresh_expiry, utc_now
from authgate.models.security import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenRegistry:
    """
    Durable lifecycle records for refresh tokens.

    Cryptographic validity lives in the token; business validity (revoked,
    rotated) lives here. Every state change is a conditional UPDATE on the
    ``revoked`` flag, so concurrent writers on the same jti are decided by
    the database: the first commit wins and later writers match zero rows.
    Database failures, including lock timeouts, raise RegistryUnavailableError.
    """

    def get(self, db: Session, jti: str) -> Optional[RefreshToken]:
        try:
            return db.query(RefreshToken).filter(RefreshToken.token_jti == jti).first()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RegistryUnavailableError() from exc

    def create(self, db: Session, jti: str, subject: Any, expires_at: datetime) -> RefreshToken:
        """Stage a live entry. The caller commits together with whatever issued the token."""
        record = RefreshToken(
            token_jti=jti,
            user_id=int(subject),
            expires_at=expires_at,
            revoked=False,
            replaced_by_jti=None,
        )
        db.add(record)
        db.flush()
        return record

    def revoke(self, db: Session, jti: str) -> bool:
        """
        Revoke a single entry.

        Idempotent: revoking an unknown or already revoked jti is not an error.

        Returns:
            True if this call moved a live entry to revoked
        """
        try:
            result = db.execute(
                update(RefreshToken)
                .where(RefreshToken.token_jti == jti, RefreshToken.revoked == False)  # noqa: E712
                .values(revoked=True, revoked_at=utc_now())
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RegistryUnavailableError() from exc
        return result.rowcount == 1

    def rotate(self, db: Session, old_jti: str, subject: Any) -> Tuple[str, str]:
        """
        Consume ``old_jti`` and issue its successor in one transaction.

        Args:
            db: Database session
            old_jti: jti of the refresh token being presented
            subject: User ID the token was issued to

        Returns:
            (new refresh token, new jti)

        Raises:
            ReuseDetectedError: old_jti is unknown, belongs to someone else,
                or was already revoked or rotated (including by a concurrent caller)
        """
        issued_at = utc_now()
        new_jti = generate_jti()
        new_token = create_refresh_token(subject, new_jti, now=issued_at)

        try:
            result = db.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.token_jti == old_jti,
                    RefreshToken.user_id == int(subject),
                    RefreshToken.revoked == False,  # noqa: E712
                )
                .values(revoked=True, revoked_at=issued_at, replaced_by_jti=new_jti)
            )
            if result.rowcount != 1:
                db.rollback()
                logger.warning("Rotation refused for subject %s: refresh token not live", subject)
                raise ReuseDetectedError()

            self.create(db, new_jti, subject, expires_at=refresh_expiry(issued_at))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RegistryUnavailableError() from exc

        logger.info("Rotated refresh token for subject %s", subject)
        return new_token, new_jti

    def revoke_all_for_subject(self, db: Session, subject: Any) -> int:
        try:
            result = db.execute(
                update(RefreshToken)
                .where(RefreshToken.user_id == int(subject), RefreshToken.revoked == False)  # noqa: E712
                .values(revoked=True, revoked_at=utc_now())
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RegistryUnavailableError() from exc
        return result.rowcount

    def purge_expired(self, db: Session, now: Optional[datetime] = None) -> int:
        """Delete entries whose refresh token can no longer verify cryptographically."""
        cutoff = now or utc_now()
        try:
            result = db.execute(
                delete(RefreshToken).where(RefreshToken.expires_at < cutoff)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RegistryUnavailableError() from exc
        logger.info("Purged %d expired refresh token entries", result.rowcount)
        return result.rowcount


token_registry = RefreshTokenRegistry()
