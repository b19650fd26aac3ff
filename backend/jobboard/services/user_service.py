"""User service - credential store for users, profiles and emailed security actions"""

from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timedelta
from jobboard.models.user import (
    User,
    UserRole,
    SecurityActionKind,
    TalentProfile,
    EmployerProfile,
)
from jobboard.core.database import utcnow
from jobboard.core.security import get_password_hash, generate_action_token, hash_token, password_too_long
from jobboard.core.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError, ValidationError
import logging

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class UserService:
    """Service for user persistence"""

    UPDATABLE_FIELDS = frozenset({
        "password_hash",
        "is_active",
        "is_email_verified",
        "action_kind",
        "action_token_hash",
        "action_expires_at",
        "last_login",
    })

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email, ignoring case"""
        if not email:
            return None
        return db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()

    @staticmethod
    def update_user(db: Session, user: User, *, commit: bool = True, **fields: Any) -> User:
        """
        Update mutable user fields

        Role and email are fixed after creation and cannot be changed here.

        Args:
            db: Database session
            user: User to update
            commit: Commit immediately, or leave it to the caller's transaction
            **fields: Column values to set

        Returns:
            Updated user
        """
        unknown = set(fields) - UserService.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

        for name, value in fields.items():
            setattr(user, name, value)
        if commit:
            db.commit()
            db.refresh(user)
        return user

    @staticmethod
    def create_user(
        db: Session,
        *,
        email: str,
        password: str,
        role: UserRole,
        profile_data: Optional[Dict[str, Any]] = None,
        is_email_verified: bool = False,
    ) -> User:
        """
        Create a user together with the profile its role requires

        TALENT gets a talent profile, EMPLOYER an employer profile, MODERATOR
        nothing. Both rows are written in one transaction.

        Args:
            db: Database session
            email: Login email
            password: Plain text password
            role: Account role
            profile_data: Column values for the profile row
            is_email_verified: Mark the email verified up front

        Returns:
            Created user
        """
        email = normalize_email(email)
        if UserService.get_user_by_email(db, email):
            raise ResourceAlreadyExistsError("User")
        if password_too_long(password):
            raise ValidationError("Password too long")

        role = UserRole(role)
        profile_data = dict(profile_data or {})

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            role=role.value,
            is_active=True,
            is_email_verified=is_email_verified,
        )

        if role is UserRole.TALENT:
            user.talent_profile = TalentProfile(**profile_data)
        elif role is UserRole.EMPLOYER:
            user.employer_profile = EmployerProfile(**profile_data)
        elif profile_data:
            raise ValidationError("Moderators do not have profiles")

        try:
            db.add(user)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)

        logger.info(f"Created user {user.id} (role: {user.role})")
        return user

    @staticmethod
    def delete_user(db: Session, user_id: int) -> bool:
        """
        Delete user; profiles and refresh tokens go with it

        Args:
            db: Database session
            user_id: User ID

        Returns:
            True if deleted
        """
        user = db.query(User).filter(User.id == user_id).first()

        if not user:
            raise ResourceNotFoundError("User")

        try:
            db.delete(user)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Deleted user: {user_id}")
        return True

    @staticmethod
    def issue_security_action(
        db: Session,
        user: User,
        kind: SecurityActionKind,
        ttl: timedelta,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Issue the user's single outstanding emailed token

        Any pending action of either kind is replaced. Only the token hash is stored.

        Returns:
            Raw token to embed in the emailed link
        """
        token = generate_action_token()
        UserService.update_user(
            db,
            user,
            action_kind=SecurityActionKind(kind).value,
            action_token_hash=hash_token(token),
            action_expires_at=(now or utcnow()) + ttl,
        )
        return token

    @staticmethod
    def find_by_security_action(
        db: Session,
        token: str,
        kind: SecurityActionKind,
    ) -> Tuple[Optional[User], bool]:
        """
        Look up the user holding an action token

        Returns:
            (user, kind_matches); user is None when the token is unknown
        """
        if not token:
            return None, False
        user = db.query(User).filter(User.action_token_hash == hash_token(token)).first()
        if user is None:
            return None, False
        return user, user.action_kind == SecurityActionKind(kind).value


# Singleton instance
user_service = UserService()
