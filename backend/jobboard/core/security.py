"""Security utilities - JWT access tokens, refresh secrets, password hashing"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
import bcrypt
import hashlib
import secrets
from jobboard.config import settings

ACCESS_TOKEN_TYPE = "access"

# 384 bits of randomness; the secret carries no user information.
REFRESH_SECRET_BYTES = 48

# bcrypt only looks at the first 72 bytes of a password, and current releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


@dataclass(frozen=True)
class AccessTokenPayload:
    """Verified claims of an access token"""

    user_id: int
    issued_at: datetime
    expires_at: datetime


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    bcrypt.checkpw compares in constant time.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


# Compared against when the email is unknown so that login takes the same time either way.
DUMMY_PASSWORD_HASH = get_password_hash("jobboard-timing-equalizer")


def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a signed JWT access token for a user

    Args:
        user_id: Owner of the token
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        now: Issue time, defaults to the current clock

    Returns:
        str: Encoded JWT token
    """
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + (expires_delta if expires_delta is not None else settings.access_token_ttl)

    to_encode = {
        "sub": str(user_id),
        "typ": ACCESS_TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, now: Optional[datetime] = None) -> Optional[AccessTokenPayload]:
    """
    Verify signature and expiry of an access token

    Every failure (bad signature, expiry, malformed token, wrong type) yields None
    so callers cannot tell them apart.

    Args:
        token: JWT token string
        now: Verification time, defaults to the current clock

    Returns:
        Optional[AccessTokenPayload]: Verified claims or None if invalid
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        return None

    try:
        user_id = int(payload["sub"])
        issued_at = int(payload["iat"])
        expires_at = int(payload["exp"])
    except (KeyError, TypeError, ValueError):
        return None

    # exp is whole seconds rounded down, so reaching it means the token is spent.
    current = (now or datetime.now(timezone.utc)).timestamp()
    if expires_at <= current:
        return None

    return AccessTokenPayload(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
    )


def generate_refresh_secret() -> str:
    """
    Generate an opaque refresh token secret

    Returns:
        str: URL-safe random string
    """
    return secrets.token_urlsafe(REFRESH_SECRET_BYTES)


def generate_action_token() -> str:
    """
    Generate a single-use email verification / password reset token

    Returns:
        str: URL-safe random string
    """
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """
    One-way SHA-256 digest used to persist and look up high-entropy tokens

    Args:
        token: Raw token value

    Returns:
        str: Hex digest
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
