"""API dependencies - authentication and authorization"""

from dataclasses import dataclass
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Callable, Optional, Tuple
import logging

from jobboard.core.database import get_db
from jobboard.core.security import decode_access_token
from jobboard.core.exceptions import (
    AccountDisabledError,
    AccountMisconfiguredError,
    AuthenticationError,
    AuthorizationError,
    MalformedAuthorizationError,
    MissingAuthorizationError,
    TokenInvalidError,
)
from jobboard.models.user import UserRole
from jobboard.services.account_service import Account, load_account
from jobboard.services.user_service import UserService, user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to the request"""
    user_id: int
    role: UserRole


class AuthGate:
    """
    Per-request verification of bearer access tokens

    Checks run in order and the first failure wins:
    header missing (401), scheme malformed (400), token invalid or expired (401),
    user missing (401), user inactive (403), role/profile mismatch (403).
    """

    def __init__(self, users: UserService = user_service):
        self.users = users

    @staticmethod
    def extract_token(authorization: Optional[str]) -> str:
        """
        Pull the token out of an `Authorization: Bearer <token>` header

        Raises:
            MissingAuthorizationError: header absent or empty
            MalformedAuthorizationError: any other scheme or shape
        """
        if not authorization or not authorization.strip():
            raise MissingAuthorizationError()

        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            logger.warning("Rejected malformed Authorization header")
            raise MalformedAuthorizationError()
        return parts[1]

    def authenticate(self, db: Session, authorization: Optional[str]) -> Tuple[Identity, Account]:
        """
        Verify the header and load the caller

        Args:
            db: Database session
            authorization: Raw Authorization header value

        Returns:
            The caller's identity and role-typed account
        """
        token = self.extract_token(authorization)

        payload = decode_access_token(token)
        if payload is None:
            logger.debug("Rejected invalid or expired access token")
            raise TokenInvalidError()

        user = self.users.get_user_by_id(db, payload.user_id)
        if not user:
            logger.debug("Access token for unknown user %s", payload.user_id)
            raise AuthenticationError("User not found")

        if not user.is_active:
            raise AccountDisabledError()

        try:
            account = load_account(db, user)
        except AccountMisconfiguredError:
            logger.warning("User %s (role %s) failed the role/profile check", user.id, user.role)
            raise

        return Identity(user_id=user.id, role=account.role), account


auth_gate = AuthGate()


def get_current_account(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Account:
    """
    Authenticate the request and attach the caller to `request.state`

    Args:
        request: Incoming request
        authorization: Authorization header
        db: Database session

    Returns:
        Role-typed account of the caller
    """
    identity, account = auth_gate.authenticate(db, authorization)
    request.state.identity = identity
    return account


def get_current_identity(
    request: Request,
    account: Account = Depends(get_current_account),
) -> Identity:
    """Identity attached by `get_current_account`"""
    return request.state.identity


def require_role(*roles: UserRole) -> Callable[..., Identity]:
    """
    Build a dependency admitting only the given roles

    Args:
        roles: Allowed roles

    Returns:
        Dependency yielding the caller's identity
    """
    allowed = frozenset(UserRole(role) for role in roles)

    def _require_role(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise AuthorizationError("Forbidden")
        return identity

    return _require_role
