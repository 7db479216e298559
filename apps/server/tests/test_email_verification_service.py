"""Tests for the email OTP verification ledger."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from controlplane.core.clock import as_utc
from controlplane.core.config import Settings
from controlplane.models.email_verification import EmailVerification
from controlplane.models.user import AccountStatus, OnboardingStep
from controlplane.services.email import EmailDeliveryError
from controlplane.services.email_verification import (
    EmailAlreadyVerifiedError,
    EmailVerificationService,
    InvalidOtpError,
    OtpAlreadyVerifiedError,
    OtpAttemptsExceededError,
    OtpExpiredError,
    VerificationNotFoundError,
)


@pytest.fixture()
def service(clock) -> EmailVerificationService:
    return EmailVerificationService(clock=clock)


def _wrong(otp: str) -> str:
    return "000000" if otp != "000000" else "111111"


def test_send_verification_otp_persists_hashed_code(db_session, make_user, service, clock, capture_outbound_email) -> None:
    user = make_user(password="P@ssw0rd1")

    record = service.send_verification_otp(db_session, user)

    assert len(capture_outbound_email) == 1
    otp = capture_outbound_email[0]["otp"]
    assert capture_outbound_email[0]["recipient"] == user.email
    assert record.otp_hash != otp
    assert record.attempts == 0
    assert as_utc(record.expires_at) == clock.now + timedelta(minutes=5)


def test_default_sender_receives_service_settings(db_session, make_user, clock, capture_outbound_email) -> None:
    settings = Settings(EMAIL_OTP_EXPIRY_MINUTES=7)
    service = EmailVerificationService(settings=settings, clock=clock)

    record = service.send_verification_otp(db_session, make_user())

    assert capture_outbound_email[-1]["settings"] is settings
    assert as_utc(record.expires_at) == clock.now + timedelta(minutes=7)


def test_send_verification_otp_rolls_back_on_delivery_failure(db_session, make_user, clock) -> None:
    user = make_user()

    def _failing_sender(*_args, **_kwargs) -> None:
        raise EmailDeliveryError()

    service = EmailVerificationService(email_sender=_failing_sender, clock=clock)

    with pytest.raises(EmailDeliveryError):
        service.send_verification_otp(db_session, user)

    assert db_session.execute(select(EmailVerification)).scalars().all() == []


def test_verify_otp_marks_user_and_advances_step(db_session, make_user, service, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    otp = capture_outbound_email[-1]["otp"]

    verified_user = service.verify_otp(db_session, user.id, otp)

    assert verified_user.email_verified is True
    assert verified_user.email_verified_at is not None
    assert verified_user.onboarding_step is OnboardingStep.MOBILE_VERIFICATION
    assert verified_user.account_status is AccountStatus.PENDING_MOBILE
    assert service.get_latest(db_session, user.id).is_verified is True


def test_verify_otp_succeeds_exactly_once(db_session, make_user, service, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    otp = capture_outbound_email[-1]["otp"]

    service.verify_otp(db_session, user.id, otp)

    with pytest.raises(OtpAlreadyVerifiedError):
        service.verify_otp(db_session, user.id, otp)


def test_verify_otp_without_challenge(db_session, make_user, service) -> None:
    user = make_user()

    with pytest.raises(VerificationNotFoundError):
        service.verify_otp(db_session, user.id, "123456")


def test_wrong_otp_increments_attempts(db_session, make_user, service, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    otp = capture_outbound_email[-1]["otp"]

    with pytest.raises(InvalidOtpError):
        service.verify_otp(db_session, user.id, _wrong(otp))

    db_session.expire_all()
    assert service.get_latest(db_session, user.id).attempts == 1


def test_fourth_attempt_fails_even_with_correct_code(db_session, make_user, service, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    otp = capture_outbound_email[-1]["otp"]

    for _ in range(3):
        with pytest.raises(InvalidOtpError):
            service.verify_otp(db_session, user.id, _wrong(otp))
        db_session.expire_all()

    with pytest.raises(OtpAttemptsExceededError):
        service.verify_otp(db_session, user.id, otp)


def test_expiry_boundary(db_session, make_user, service, clock, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    otp = capture_outbound_email[-1]["otp"]

    clock.advance(minutes=5, seconds=-1)
    with pytest.raises(InvalidOtpError):
        service.verify_otp(db_session, user.id, _wrong(otp))

    clock.advance(seconds=2)
    db_session.expire_all()
    with pytest.raises(OtpExpiredError):
        service.verify_otp(db_session, user.id, otp)


def test_resend_otp_replaces_outstanding_codes(db_session, make_user, service, capture_outbound_email) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    first_otp = capture_outbound_email[-1]["otp"]

    service.resend_otp(db_session, user.id)

    rows = db_session.execute(
        select(EmailVerification).where(EmailVerification.user_id == user.id)
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].attempts == 0
    assert len(capture_outbound_email) == 2
    second_otp = capture_outbound_email[-1]["otp"]
    if first_otp != second_otp:
        with pytest.raises(InvalidOtpError):
            service.verify_otp(db_session, user.id, first_otp)
        db_session.expire_all()
    assert service.verify_otp(db_session, user.id, second_otp).email_verified is True


def test_resend_otp_rejects_verified_email(db_session, make_user, service) -> None:
    user = make_user(email_verified=True)

    with pytest.raises(EmailAlreadyVerifiedError):
        service.resend_otp(db_session, user.id)


def test_cleanup_expired_removes_only_stale_unverified_rows(db_session, make_user, service, clock) -> None:
    user = make_user()
    service.send_verification_otp(db_session, user)
    clock.advance(minutes=6)
    service.send_verification_otp(db_session, user)

    removed = service.cleanup_expired(db_session)

    assert removed == 1
    assert len(db_session.execute(select(EmailVerification)).scalars().all()) == 1
