"""Session service - login, refresh, logout and the emailed-token flows around them"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.core.database import as_utc, utcnow
from jobboard.core.exceptions import (
    AccountDisabledError,
    AuthenticationError,
    EmailAlreadyVerifiedError,
    InvalidActionTokenError,
    InvalidCredentialsError,
    InvalidOldPasswordError,
    RefreshTokenError,
    ValidationError,
)
from jobboard.core.metrics import AUTH_EVENTS
from jobboard.core.security import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    get_password_hash,
    password_too_long,
    verify_password,
)
from jobboard.models.user import SecurityActionKind, User, UserRole
from jobboard.services.email_service import EmailService, email_service
from jobboard.services.token_service import RefreshTokenLedger, refresh_ledger
from jobboard.services.user_service import UserService, redact_email, user_service

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = (UserRole.TALENT, UserRole.EMPLOYER)


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_secret: str
    refresh_ttl_ms: int
    user: User


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    refresh_secret: str
    refresh_ttl_ms: int
    user: User


@dataclass(frozen=True)
class VerificationRequired:
    """Login or lookup stopped because the email is unverified.

    Not an error: clients branch to their verification screen. The token is
    only filled in outside production.
    """

    user_id: int
    verification_token: Optional[str] = None


@dataclass(frozen=True)
class Registration:
    user: User
    verification_token: Optional[str] = None


class SessionService:
    """Orchestrates the credential store, token issuer and refresh ledger.

    Collaborators are injected so tests can swap the mailer or the ledger.
    """

    def __init__(
        self,
        *,
        users: UserService = user_service,
        ledger: RefreshTokenLedger = refresh_ledger,
        mailer: EmailService = email_service,
        expose_tokens: Optional[bool] = None,
    ) -> None:
        self.users = users
        self.ledger = ledger
        self.mailer = mailer
        # Outside production the raw emailed tokens are handed back for local testing.
        self.expose_tokens = (not settings.is_production) if expose_tokens is None else expose_tokens

    @property
    def refresh_ttl_ms(self) -> int:
        return int(self.ledger.ttl.total_seconds() * 1000)

    def _frontend_link(self, path: str, token: str) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/{path}?vt={token}"

    def _exposed(self, token: str) -> Optional[str]:
        return token if self.expose_tokens else None

    def _send_verification(self, db: Session, user: User) -> str:
        token = self.users.issue_security_action(
            db, user, SecurityActionKind.VERIFY_EMAIL, settings.verification_token_ttl
        )
        url = self._frontend_link("verify", token)
        if not settings.is_production:
            logger.info("[dev] verification url for %s: %s", redact_email(user.email), url)
        self.mailer.send_verification_email(
            user.email, url, expiry_minutes=settings.VERIFICATION_TOKEN_EXPIRE_MINUTES
        )
        return token

    def _find_action(self, db: Session, token: str, kind: SecurityActionKind) -> User:
        user, kind_matches = self.users.find_by_security_action(db, token, kind)
        if user is None or not kind_matches:
            raise InvalidActionTokenError()
        return user

    def _ensure_unexpired(self, db: Session, user: User) -> None:
        """Expired actions are cleared before the rejection."""
        expires_at = as_utc(user.action_expires_at)
        if expires_at is None or expires_at <= utcnow():
            self.users.update_user(db, user, action_kind=None, action_token_hash=None, action_expires_at=None)
            raise InvalidActionTokenError("Token has expired")

    def _claim_action(self, db: Session, token: str, kind: SecurityActionKind) -> User:
        """Resolve an unexpired emailed token of ``kind``."""
        user = self._find_action(db, token, kind)
        self._ensure_unexpired(db, user)
        return user

    def register(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        role: UserRole,
        profile_data: Optional[Dict[str, Any]] = None,
    ) -> Registration:
        """Create a TALENT or EMPLOYER account with its profile and send the verification email."""
        role = UserRole(role)
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError("Invalid role")

        user = self.users.create_user(
            db, email=email, password=password, role=role, profile_data=profile_data
        )
        token = self._send_verification(db, user)
        AUTH_EVENTS.labels("register").inc()
        return Registration(user=user, verification_token=self._exposed(token))

    def verify_email(self, db: Session, token: str) -> User:
        user = self._find_action(db, token, SecurityActionKind.VERIFY_EMAIL)
        if user.is_email_verified:
            user.clear_security_action()
            db.commit()
            raise EmailAlreadyVerifiedError()
        self._ensure_unexpired(db, user)

        user.is_email_verified = True
        user.clear_security_action()
        db.commit()
        logger.debug("User %s verified their email", user.id)
        return user

    def resend_verification(self, db: Session, email: str) -> Optional[str]:
        """Always succeeds from the caller's view so email existence is not revealed."""
        user = self.users.get_user_by_email(db, email)
        if user is None or user.is_email_verified:
            return None
        return self._exposed(self._send_verification(db, user))

    def login(self, db: Session, email: str, password: str) -> Union[LoginResult, VerificationRequired]:
        """
        Authenticate with email and password

        Returns:
            LoginResult with a fresh token pair, or VerificationRequired when the
            email is not verified yet (a new verification email is sent)

        Raises:
            InvalidCredentialsError: unknown email or wrong password
            AccountDisabledError: correct password on a deactivated account
        """
        user = self.users.get_user_by_email(db, email)
        if user is None:
            # Same bcrypt cost as a real check so timing does not reveal the miss.
            verify_password(password, DUMMY_PASSWORD_HASH)
            logger.debug("Login failed: unknown email")
            AUTH_EVENTS.labels("login_failed").inc()
            raise InvalidCredentialsError()

        if not user.is_email_verified:
            token = self._send_verification(db, user)
            AUTH_EVENTS.labels("login_unverified").inc()
            return VerificationRequired(user_id=user.id, verification_token=self._exposed(token))

        if not verify_password(password, user.password_hash):
            logger.debug("Login failed: bad password for user %s", user.id)
            AUTH_EVENTS.labels("login_failed").inc()
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        access_token = create_access_token(user.id)
        refresh_secret, _ = self.ledger.issue(db, user.id)
        self.users.update_user(db, user, last_login=utcnow())

        AUTH_EVENTS.labels("login").inc()
        logger.info("User %s logged in", user.id)
        return LoginResult(
            access_token=access_token,
            refresh_secret=refresh_secret,
            refresh_ttl_ms=self.refresh_ttl_ms,
            user=user,
        )

    def refresh(self, db: Session, presented_secret: Optional[str]) -> RefreshResult:
        """
        Rotate a refresh token and mint a new access token

        Raises:
            RefreshTokenError: token unknown, expired, reused or its owner is gone;
                the client must discard its session cookie
        """
        result = self.ledger.rotate(db, presented_secret or "")
        if not result.ok:
            AUTH_EVENTS.labels(f"refresh_{result.reason.value}").inc()
            raise RefreshTokenError()

        user = self.users.get_user_by_id(db, result.user_id)
        if user is None or not user.is_active:
            self.ledger.revoke_all(db, result.user_id)
            AUTH_EVENTS.labels("refresh_inactive_user").inc()
            raise RefreshTokenError()

        AUTH_EVENTS.labels("refresh").inc()
        return RefreshResult(
            access_token=create_access_token(user.id),
            refresh_secret=result.secret,
            refresh_ttl_ms=self.refresh_ttl_ms,
            user=user,
        )

    def logout(self, db: Session, presented_secret: Optional[str]) -> bool:
        """Revoke the presented refresh token. Succeeds for any token state."""
        self.ledger.revoke(db, presented_secret)
        AUTH_EVENTS.labels("logout").inc()
        return True

    def logout_all(self, db: Session, user_id: int) -> int:
        count = self.ledger.revoke_all(db, user_id)
        AUTH_EVENTS.labels("logout_all").inc()
        logger.info("User %s logged out of %d sessions", user_id, count)
        return count

    def request_password_reset(self, db: Session, email: str) -> Optional[str]:
        """Email a reset link. Always succeeds from the caller's view."""
        user = self.users.get_user_by_email(db, email)
        if user is None:
            return None

        token = self.users.issue_security_action(
            db, user, SecurityActionKind.RESET_PASSWORD, settings.verification_token_ttl
        )
        url = self._frontend_link("reset", token)
        if not settings.is_production:
            logger.info("[dev] password reset url for %s: %s", redact_email(user.email), url)
        self.mailer.send_password_reset_email(
            user.email, url, expiry_minutes=settings.VERIFICATION_TOKEN_EXPIRE_MINUTES
        )
        return self._exposed(token)

    def reset_password(
        self,
        db: Session,
        token: str,
        new_password: str,
        old_password: Optional[str] = None,
    ) -> User:
        """
        Set a new password from a reset token

        The password change, email verification, token clearing and the
        revocation of every refresh token commit together.
        """
        if password_too_long(new_password):
            raise ValidationError("Password too long")
        user = self._claim_action(db, token, SecurityActionKind.RESET_PASSWORD)

        if user.is_email_verified and old_password:
            if not verify_password(old_password, user.password_hash):
                raise InvalidOldPasswordError()

        try:
            self.users.update_user(
                db,
                user,
                commit=False,
                password_hash=get_password_hash(new_password),
                is_email_verified=True,
                action_kind=None,
                action_token_hash=None,
                action_expires_at=None,
            )
            revoked = self.ledger.revoke_all(db, user.id, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        AUTH_EVENTS.labels("password_reset").inc()
        logger.info("Password reset for user %s, %d sessions revoked", user.id, revoked)
        return user

    def set_user_active(self, db: Session, user_id: int, is_active: bool) -> Optional[User]:
        """Activate or deactivate a user; deactivation revokes every session in the same commit."""
        user = self.users.get_user_by_id(db, user_id)
        if user is None:
            return None

        try:
            self.users.update_user(db, user, commit=False, is_active=is_active)
            if not is_active:
                self.ledger.revoke_all(db, user.id, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)

        logger.info("User %s %s", user.id, "activated" if is_active else "deactivated")
        return user

    def get_current(self, db: Session, user_id: int) -> Union[User, VerificationRequired]:
        user = self.users.get_user_by_id(db, user_id)
        if user is None:
            raise AuthenticationError("User not found")
        if not user.is_email_verified:
            return VerificationRequired(user_id=user.id)
        return user

    def ensure_moderator(self, db: Session, email: str, password: str) -> Optional[User]:
        """Create the bootstrap moderator unless the email is already taken."""
        if self.users.get_user_by_email(db, email):
            return None
        user = self.users.create_user(
            db, email=email, password=password, role=UserRole.MODERATOR, is_email_verified=True
        )
        logger.info("Created moderator user %s", user.id)
        return user


session_service = SessionService()
