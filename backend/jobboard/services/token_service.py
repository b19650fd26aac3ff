"""Refresh token ledger: issuance, rotation with replay detection, revocation."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.core.database import utcnow
from jobboard.core.security import generate_refresh_secret, hash_token
from jobboard.models.security import RefreshToken, RefreshTokenState

logger = logging.getLogger(__name__)


class RotationFailure(str, enum.Enum):
    INVALID = "invalid_token"
    REPLAYED = "token_reused"
    EXPIRED = "token_expired"


@dataclass(frozen=True)
class RotationResult:
    ok: bool
    user_id: Optional[int] = None
    secret: Optional[str] = None
    expires_at: Optional[datetime] = None
    reason: Optional[RotationFailure] = None

    @classmethod
    def failure(cls, reason: RotationFailure, user_id: Optional[int] = None) -> "RotationResult":
        return cls(ok=False, reason=reason, user_id=user_id)


class RefreshTokenLedger:
    """Owns every ``refresh_tokens`` row.

    Expected failures (unknown, expired, replayed tokens) come back as a
    ``RotationResult``; only database errors propagate, after a rollback.
    Each read-then-write operation runs in a single transaction on the
    session it is given.
    """

    def __init__(self, ttl: Optional[timedelta] = None) -> None:
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl if self._ttl is not None else settings.refresh_token_ttl

    @staticmethod
    def _find(db: Session, secret: str, *, lock: bool = False) -> Optional[RefreshToken]:
        query = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(secret))
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def _revoke_user_tokens(db: Session, user_id: int, now: datetime) -> int:
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked == False)  # noqa: E712
            .values(revoked=True, revoked_at=now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def store(
        self,
        db: Session,
        secret: str,
        user_id: int,
        expires_at: datetime,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(secret),
            issued_at=now or utcnow(),
            expires_at=expires_at,
            revoked=False,
        )
        db.add(record)
        try:
            db.flush()
            if commit:
                db.commit()
        except Exception:
            db.rollback()
            raise
        return record

    def issue(self, db: Session, user_id: int, *, now: Optional[datetime] = None) -> tuple[str, RefreshToken]:
        """Mint a fresh secret for ``user_id`` and record it."""
        now = now or utcnow()
        secret = generate_refresh_secret()
        record = self.store(db, secret, user_id, now + self.ttl, now=now)
        return secret, record

    def rotate(self, db: Session, presented_secret: str, *, now: Optional[datetime] = None) -> RotationResult:
        """Consume an active token and replace it with a new one.

        Presenting a rotated or revoked token is a replay: every token the
        owner holds is revoked. Losing a race against a concurrent rotation
        of the same token counts as a replay too.
        """
        if not presented_secret:
            return RotationResult.failure(RotationFailure.INVALID)

        now = now or utcnow()
        try:
            record = self._find(db, presented_secret, lock=True)
            if record is None:
                db.rollback()
                logger.debug("Refresh rejected: unknown token")
                return RotationResult.failure(RotationFailure.INVALID)

            user_id = record.user_id
            state = record.state_at(now)

            if state in (RefreshTokenState.ROTATED, RefreshTokenState.REVOKED):
                return self._respond_to_replay(db, record, state, now)

            if state is RefreshTokenState.EXPIRED:
                record.revoked = True
                record.revoked_at = now
                db.commit()
                logger.debug("Refresh rejected: token %s expired", record.id)
                return RotationResult.failure(RotationFailure.EXPIRED, user_id)

            claimed = db.execute(
                update(RefreshToken)
                .where(RefreshToken.id == record.id, RefreshToken.revoked == False)  # noqa: E712
                .values(revoked=True, revoked_at=now)
                .execution_options(synchronize_session="fetch")
            ).rowcount
            if claimed != 1:
                record_id = record.id
                db.rollback()
                record = db.get(RefreshToken, record_id)
                return self._respond_to_replay(db, record, RefreshTokenState.ROTATED, now)

            new_secret = generate_refresh_secret()
            successor = RefreshToken(
                user_id=user_id,
                token_hash=hash_token(new_secret),
                issued_at=now,
                expires_at=now + self.ttl,
                revoked=False,
            )
            db.add(successor)
            db.flush()
            record.replaced_by_id = successor.id
            expires_at = successor.expires_at
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.debug("Refresh token rotated for user %s", user_id)
        return RotationResult(ok=True, user_id=user_id, secret=new_secret, expires_at=expires_at)

    def _respond_to_replay(
        self, db: Session, record: RefreshToken, state: RefreshTokenState, now: datetime
    ) -> RotationResult:
        user_id = record.user_id
        token_id = record.id
        revoked = self._revoke_user_tokens(db, user_id, now)
        db.commit()
        logger.error(
            "Refresh token replay detected security_event=refresh_token_replay "
            "user_id=%s token_id=%s state=%s revoked_tokens=%d",
            user_id,
            token_id,
            state.value,
            revoked,
        )
        return RotationResult.failure(RotationFailure.REPLAYED, user_id)

    def revoke(self, db: Session, secret: Optional[str], *, now: Optional[datetime] = None) -> bool:
        """Revoke a single token. Reports success whatever the token's state."""
        if not secret:
            return True
        try:
            record = self._find(db, secret, lock=True)
            if record is not None and not record.revoked:
                record.revoked = True
                record.revoked_at = now or utcnow()
                db.commit()
            else:
                db.rollback()
        except Exception:
            db.rollback()
            raise
        return True

    def revoke_all(
        self,
        db: Session,
        user_id: int,
        *,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> int:
        """Revoke every live token of a user; returns how many were flipped."""
        try:
            count = self._revoke_user_tokens(db, user_id, now or utcnow())
            if commit:
                db.commit()
        except Exception:
            db.rollback()
            raise
        return count


refresh_ledger = RefreshTokenLedger()
