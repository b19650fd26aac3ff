import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-0123456789")
os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "jobboard-tests.log"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobboard.core.database import Base
from jobboard.models.user import User, UserRole
from jobboard.services.session_service import SessionService
from jobboard.services.token_service import RefreshTokenLedger
from jobboard.services.user_service import user_service

PASSWORD = "correct horse battery"

PROFILE_DATA = {
    UserRole.TALENT: {"first_name": "Ada", "last_name": "Lovelace"},
    UserRole.EMPLOYER: {"company_name": "Analytical Engines Ltd"},
    UserRole.MODERATOR: None,
}


class RecordingMailer:
    """Stands in for SMTP delivery"""

    def __init__(self):
        self.sent = []

    def send_verification_email(self, to_email, verification_url, expiry_minutes):
        self.sent.append(("verify", to_email, verification_url))
        return True

    def send_password_reset_email(self, to_email, reset_url, expiry_minutes):
        self.sent.append(("reset", to_email, reset_url))
        return True


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def ledger():
    return RefreshTokenLedger()


@pytest.fixture
def service(ledger, mailer):
    return SessionService(ledger=ledger, mailer=mailer, expose_tokens=True)


@pytest.fixture
def make_user(db):
    def _make_user(
        email: str = "ada@talent.io",
        role: UserRole = UserRole.TALENT,
        verified: bool = True,
        password: str = PASSWORD,
    ) -> User:
        user = user_service.create_user(
            db,
            email=email,
            password=password,
            role=role,
            profile_data=PROFILE_DATA[role],
            is_email_verified=verified,
        )
        return user

    return _make_user
