"""Shared pytest fixtures for server tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _ensure_test_environment() -> None:
    """Guarantee a valid Fernet key and a local database URL for the test run."""

    current = os.environ.get("ENCRYPTION_KEY")
    if current:
        try:
            Fernet(current.encode() if isinstance(current, str) else current)
        except ValueError:
            os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()
    else:
        os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()

    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")


_ensure_test_environment()

from controlplane.core.config import Settings  # noqa: E402
from controlplane.core.security import get_password_hash  # noqa: E402
from controlplane.db.base import Base  # noqa: E402
from controlplane.models.user import AccountStatus, OnboardingStep, User  # noqa: E402


@compiles(UUID, "sqlite")
def compile_uuid_sqlite(_element, _compiler, **_kw) -> str:
    """Render UUID columns as TEXT for the SQLite test database."""

    return "TEXT"


TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(
    bind=test_engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    future=True,
)

Base.metadata.create_all(bind=test_engine)


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    """Provide a clean database session for each test."""

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def session_factory(db_session: Session) -> sessionmaker:
    """Session factory sharing the in-memory database of ``db_session``."""

    return TestingSessionLocal


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with every external integration configured with dummy values."""

    return Settings(
        JWT_SECRET_KEY="test-jwt-secret",
        CSRF_HMAC_KEY="test-csrf-key",
        ENCRYPTION_KEY=os.environ["ENCRYPTION_KEY"],
        GOOGLE_CLIENT_ID="google-client",
        GOOGLE_CLIENT_SECRET="google-secret",
        MICROSOFT_CLIENT_ID="microsoft-client",
        MICROSOFT_CLIENT_SECRET="microsoft-secret",
        FACEBOOK_CLIENT_ID="facebook-client",
        FACEBOOK_CLIENT_SECRET="facebook-secret",
        X_CLIENT_ID="x-client",
        X_CLIENT_SECRET="x-secret",
        WHATSAPP_PHONE_NUMBER_ID="123456",
        WHATSAPP_ACCESS_TOKEN="wa-token",
        WHATSAPP_APP_SECRET="wa-app-secret",
        WHATSAPP_VERIFY_TOKEN="wa-verify",
        WHATSAPP_BUSINESS_NUMBER="+15550000000",
    )


@pytest.fixture(autouse=True)
def capture_outbound_email(monkeypatch: pytest.MonkeyPatch) -> Generator[list[dict], None, None]:
    """Record outbound OTP emails for assertions instead of talking to SMTP."""

    sent: list[dict] = []

    def _capture(to: str, otp: str, name: str | None = None, *, settings: Settings | None = None) -> None:
        sent.append({"recipient": to, "otp": otp, "name": name, "settings": settings})

    monkeypatch.setattr("controlplane.services.email.send_verification_email", _capture)
    monkeypatch.setattr("controlplane.services.email_verification.send_verification_email", _capture)
    yield sent


@pytest.fixture()
def make_user(db_session: Session):
    """Factory persisting a user in a given onboarding state."""

    def _make_user(
        email: str = "user@example.com",
        *,
        password: str | None = "P@ssw0rd1",
        email_verified: bool = False,
        phone: str | None = None,
        phone_verified: bool = False,
        onboarding_step: OnboardingStep = OnboardingStep.EMAIL_VERIFICATION,
        account_status: AccountStatus = AccountStatus.PENDING_EMAIL,
        onboarding_complete: bool = False,
    ) -> User:
        user = User(
            email=email,
            password_hash=get_password_hash(password) if password else None,
            email_verified=email_verified,
            phone=phone,
            phone_verified=phone_verified,
            onboarding_step=onboarding_step,
            account_status=account_status,
            onboarding_complete=onboarding_complete,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def active_user(make_user) -> User:
    return make_user(
        "active@example.com",
        email_verified=True,
        phone="+15551234567",
        phone_verified=True,
        onboarding_step=OnboardingStep.COMPLETE,
        account_status=AccountStatus.ACTIVE,
        onboarding_complete=True,
    )
