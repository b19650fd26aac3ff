"""Security-related persistence models."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from jobboard.core.database import Base, as_utc


class RefreshTokenState(str, enum.Enum):
    ACTIVE = "active"
    ROTATED = "rotated"
    REVOKED = "revoked"
    EXPIRED = "expired"


class RefreshToken(Base):
    """Refresh token record for rotation/revocation.

    Only the SHA-256 digest of the secret is stored. A rotated record is revoked
    and points at its successor through ``replaced_by_id``.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    replaced_by_id = Column(Integer, ForeignKey("refresh_tokens.id", ondelete="SET NULL"), nullable=True)
    revoked = Column(Boolean, default=False, nullable=False)
    issued_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="refresh_tokens", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_refresh_tokens_user_revoked", "user_id", "revoked"),
    )

    def state_at(self, now) -> RefreshTokenState:
        if self.revoked:
            if self.replaced_by_id is not None:
                return RefreshTokenState.ROTATED
            return RefreshTokenState.REVOKED
        if as_utc(self.expires_at) <= as_utc(now):
            return RefreshTokenState.EXPIRED
        return RefreshTokenState.ACTIVE

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.revoked})>"
