"""User, profile and account-role models"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from jobboard.core.database import Base


class UserRole(str, enum.Enum):
    """Account roles; fixed at registration"""
    TALENT = "TALENT"
    EMPLOYER = "EMPLOYER"
    MODERATOR = "MODERATOR"


class SecurityActionKind(str, enum.Enum):
    """Purpose of the single outstanding emailed token on a user"""
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Stored lower-cased so equality is case-insensitive.
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)

    # One pending emailed action at a time; issuing a new one replaces the old.
    action_kind = Column(String(32), nullable=True)
    action_token_hash = Column(String(64), nullable=True, index=True)
    action_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_login = Column(DateTime(timezone=True))

    # Relationships
    talent_profile = relationship(
        "TalentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    employer_profile = relationship(
        "EmployerProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="RefreshToken.user_id",
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        CheckConstraint("role IN ('TALENT', 'EMPLOYER', 'MODERATOR')", name="ck_users_role"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, role='{self.role}')>"

    def clear_security_action(self) -> None:
        self.action_kind = None
        self.action_token_hash = None
        self.action_expires_at = None


class TalentProfile(Base):
    """Job seeker profile; owned by a TALENT user"""

    __tablename__ = "talent_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    headline = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="talent_profile")


class EmployerProfile(Base):
    """Hiring company profile; owned by an EMPLOYER user"""

    __tablename__ = "employer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    company_name = Column(String(200), nullable=False)
    website = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="employer_profile")
