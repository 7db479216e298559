"""Tests for the expired-record sweep and its background scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from controlplane.models.oauth_provider import OAuthProviderType
from controlplane.models.user import AccountStatus, OnboardingStep
from controlplane.services import maintenance
from controlplane.services.email_verification import EmailVerificationService
from controlplane.services.maintenance import (
    cleanup_task,
    is_cleanup_scheduler_running,
    start_cleanup_scheduler,
    stop_cleanup_scheduler,
    sweep_expired_records,
)
from controlplane.services.mobile_verification import MobileVerificationService
from controlplane.services.oauth_state import OAuthStateService
from controlplane.services.sessions import SessionService


@pytest.fixture(autouse=True)
def reset_scheduler():
    maintenance._cleanup_task = None
    yield
    stop_cleanup_scheduler()


def test_sweep_expired_records_reports_counts(db_session, make_user, test_settings, clock) -> None:
    oauth_states = OAuthStateService(settings=test_settings, clock=clock)
    mobile = MobileVerificationService(settings=test_settings, clock=clock)
    email = EmailVerificationService(settings=test_settings, clock=clock)
    sessions = SessionService(settings=test_settings, clock=clock)

    user = make_user(
        email_verified=True,
        onboarding_step=OnboardingStep.MOBILE_VERIFICATION,
        account_status=AccountStatus.PENDING_MOBILE,
    )
    other = make_user("other@example.com")
    oauth_states.generate_state(db_session, OAuthProviderType.GOOGLE, None, "verifier")
    mobile.initiate_verification(db_session, user.id)
    email.send_verification_otp(db_session, other)
    sessions.create_session(db_session, user.id)
    clock.advance(days=31)
    live_state = oauth_states.generate_state(db_session, OAuthProviderType.GOOGLE, None, "fresh")

    counts = sweep_expired_records(
        db_session,
        oauth_states=oauth_states,
        mobile_verifications=mobile,
        email_verifications=email,
        sessions=sessions,
    )

    assert counts == {
        "oauth_states": 1,
        "mobile_verifications": 1,
        "email_verifications": 1,
        "sessions": 1,
    }
    assert oauth_states.validate_and_consume_state(db_session, live_state).code_verifier == "fresh"


def test_sweep_with_nothing_expired(db_session, test_settings, clock) -> None:
    counts = sweep_expired_records(
        db_session,
        oauth_states=OAuthStateService(settings=test_settings, clock=clock),
        mobile_verifications=MobileVerificationService(settings=test_settings, clock=clock),
        email_verifications=EmailVerificationService(settings=test_settings, clock=clock),
        sessions=SessionService(settings=test_settings, clock=clock),
    )

    assert set(counts.values()) == {0}


@pytest.mark.asyncio
async def test_cleanup_task_sweeps_and_survives_errors(session_factory) -> None:
    calls = []

    def _fake_sweep(factory):
        calls.append(factory)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return {}

    with patch("controlplane.services.maintenance._sweep_once", side_effect=_fake_sweep):
        task = asyncio.create_task(cleanup_task(0.01, session_factory))
        for _ in range(100):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        await task

    assert len(calls) >= 2
    assert calls[0] is session_factory
    assert task.done()


@pytest.mark.asyncio
async def test_start_and_stop_scheduler(test_settings, session_factory) -> None:
    assert is_cleanup_scheduler_running() is False

    start_cleanup_scheduler(test_settings, session_factory)
    assert is_cleanup_scheduler_running() is True

    first_task = maintenance._cleanup_task
    start_cleanup_scheduler(test_settings, session_factory)
    assert maintenance._cleanup_task is first_task

    stop_cleanup_scheduler()
    assert is_cleanup_scheduler_running() is False
    await asyncio.gather(first_task, return_exceptions=True)
    assert first_task.done()


def test_start_scheduler_without_event_loop_is_noop(test_settings) -> None:
    start_cleanup_scheduler(test_settings)

    assert is_cleanup_scheduler_running() is False
