"""Security-related persistence models."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from authgate.core.database import Base


class RefreshToken(Base):
    """Registry entry tracking one refresh token through rotation and revocation."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token_jti = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    replaced_by_jti = Column(String(128), nullable=True)
    revoked = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_refresh_tokens_user_revoked", "user_id", "revoked"),
        Index("idx_refresh_tokens_expires_at", "expires_at"),
    )

    @property
    def rotated(self) -> bool:
        return self.replaced_by_jti is not None

    def __repr__(self):
        return (
            f"<RefreshToken(jti='{self.token_jti[:8]}...', user_id={self.user_id}, "
            f"revoked={self.revoked})>"
        )
