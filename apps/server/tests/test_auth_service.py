"""Tests for password login and logout."""

from __future__ import annotations

import pytest

from controlplane.core.exceptions import InvalidCredentialsError
from controlplane.core.clock import as_utc
from controlplane.models.user import AccountStatus, OnboardingStep
from controlplane.services.auth import AccountNotActiveError, AuthService, OnboardingIncompleteError
from controlplane.services.sessions import SessionInvalidError, SessionService


@pytest.fixture()
def sessions(test_settings, clock) -> SessionService:
    return SessionService(settings=test_settings, clock=clock)


@pytest.fixture()
def service(sessions, clock) -> AuthService:
    return AuthService(session_service=sessions, clock=clock)


def test_login_opens_session_and_records_login(db_session, active_user, service, sessions, clock) -> None:
    result = service.login(db_session, "Active@Example.com ", "P@ssw0rd1", "198.51.100.7", "pytest")

    assert result.user.id == active_user.id
    assert result.user.account_status is AccountStatus.ACTIVE
    assert result.expires_in == 15 * 60
    assert sessions.validate_access_token(db_session, result.access_token).ip_address == "198.51.100.7"
    db_session.refresh(active_user)
    assert as_utc(active_user.last_login_at) == clock.now


@pytest.mark.parametrize(
    "email, password",
    [("active@example.com", "wrong-password"), ("nobody@example.com", "P@ssw0rd1")],
)
def test_login_rejects_bad_credentials_uniformly(db_session, active_user, service, email, password) -> None:
    with pytest.raises(InvalidCredentialsError) as exc_info:
        service.login(db_session, email, password)

    assert exc_info.value.message == "Invalid email or password."


def test_login_rejects_user_without_password(db_session, make_user, service) -> None:
    make_user("oauth@example.com", password=None)

    with pytest.raises(InvalidCredentialsError):
        service.login(db_session, "oauth@example.com", "anything")


def test_login_requires_completed_onboarding(db_session, make_user, service) -> None:
    make_user(
        "halfway@example.com",
        email_verified=True,
        onboarding_step=OnboardingStep.MOBILE_VERIFICATION,
        account_status=AccountStatus.PENDING_MOBILE,
    )

    with pytest.raises(OnboardingIncompleteError):
        service.login(db_session, "halfway@example.com", "P@ssw0rd1")


@pytest.mark.parametrize("status", [AccountStatus.SUSPENDED, AccountStatus.DEACTIVATED])
def test_login_rejects_inactive_accounts(db_session, active_user, service, status) -> None:
    active_user.account_status = status
    db_session.commit()

    with pytest.raises(AccountNotActiveError):
        service.login(db_session, "active@example.com", "P@ssw0rd1")


def test_refresh_and_logout(db_session, active_user, service, sessions) -> None:
    result = service.login(db_session, "active@example.com", "P@ssw0rd1")

    refreshed = service.refresh(db_session, result.refresh_token)
    service.logout(db_session, refreshed.access_token)

    with pytest.raises(SessionInvalidError):
        sessions.validate_access_token(db_session, refreshed.access_token)
    with pytest.raises(SessionInvalidError):
        service.refresh(db_session, result.refresh_token)


def test_logout_all(db_session, active_user, service) -> None:
    service.login(db_session, "active@example.com", "P@ssw0rd1")
    service.login(db_session, "active@example.com", "P@ssw0rd1")

    assert service.logout_all(db_session, active_user.id) == 2
