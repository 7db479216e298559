"""Email OTP verification ledger."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, is_expired, utcnow
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import (
    AttemptsExceededError,
    BadRequestError,
    NotFoundError,
    UnauthorizedError,
)
from controlplane.core.security import generate_otp, hash_otp, verify_otp
from controlplane.models.email_verification import EmailVerification
from controlplane.models.user import AccountStatus, OnboardingStep, User
from controlplane.services.email import (
    EmailDeliveryError,
    VerificationEmailSender,
    send_verification_email,
)
from controlplane.services.users import get_user

logger = logging.getLogger(__name__)


class EmailVerificationError(Exception):
    """Marker mixin for email verification failures."""


class VerificationNotFoundError(EmailVerificationError, NotFoundError):
    reason = "verification_not_found"
    default_message = "No pending email verification found. Please request a new code."


class OtpAlreadyVerifiedError(EmailVerificationError, BadRequestError):
    reason = "otp_already_verified"
    default_message = "This verification code has already been used."


class OtpExpiredError(EmailVerificationError, BadRequestError):
    reason = "otp_expired"
    default_message = "Verification code has expired. Please request a new one."


class OtpAttemptsExceededError(EmailVerificationError, AttemptsExceededError):
    reason = "otp_attempts_exceeded"
    default_message = "Too many failed attempts. Please request a new code."


class InvalidOtpError(EmailVerificationError, UnauthorizedError):
    reason = "invalid_otp"
    default_message = "Invalid verification code."


class EmailAlreadyVerifiedError(EmailVerificationError, BadRequestError):
    reason = "email_already_verified"
    default_message = "Email address is already verified."


class EmailVerificationService:
    """Issues, checks and supersedes hashed email OTPs."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        email_sender: VerificationEmailSender | None = None,
        clock: Clock = utcnow,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._email_sender = email_sender
        self._clock = clock
        self._logger = logger_ or logger

    @property
    def max_attempts(self) -> int:
        return self._settings.email_otp_max_attempts

    def _deliver(self, user: User, otp: str) -> None:
        if self._email_sender is not None:
            self._email_sender(user.email, otp, user.first_name)
        else:
            send_verification_email(user.email, otp, user.first_name, settings=self._settings)

    def get_latest(self, db: Session, user_id: uuid.UUID) -> Optional[EmailVerification]:
        statement = (
            select(EmailVerification)
            .where(EmailVerification.user_id == user_id)
            .order_by(EmailVerification.created_at.desc(), EmailVerification.expires_at.desc())
            .limit(1)
        )
        return db.execute(statement).scalar_one_or_none()

    def send_verification_otp(self, db: Session, user: User) -> EmailVerification:
        """Persist a fresh OTP challenge for ``user`` and email the code.

        The row is only committed once the email collaborator accepted the
        message; a delivery failure rolls it back and propagates.
        """

        user_id = user.id
        otp = generate_otp()
        record = EmailVerification(
            user_id=user_id,
            email=user.email,
            otp_hash=hash_otp(otp),
            attempts=0,
            expires_at=self._clock() + timedelta(minutes=self._settings.email_otp_expiry_minutes),
        )
        db.add(record)
        db.flush()

        try:
            self._deliver(user, otp)
        except EmailDeliveryError:
            db.rollback()
            self._logger.warning("Verification email delivery failed for user %s", user_id)
            raise

        db.commit()
        self._logger.info("Email verification OTP issued for user %s", user_id)
        return record

    def verify_otp(self, db: Session, user_id: uuid.UUID, otp: str) -> User:
        """Check ``otp`` against the latest challenge and mark the email verified."""

        record = self.get_latest(db, user_id)
        if record is None:
            raise VerificationNotFoundError()

        if record.is_verified:
            raise OtpAlreadyVerifiedError()

        if is_expired(record.expires_at, self._clock()):
            raise OtpExpiredError()

        if record.attempts >= self.max_attempts:
            raise OtpAttemptsExceededError()

        if not verify_otp(otp, record.otp_hash):
            db.execute(
                update(EmailVerification)
                .where(EmailVerification.id == record.id)
                .values(attempts=EmailVerification.attempts + 1)
            )
            db.commit()
            self._logger.info("Invalid email OTP submitted for user %s", user_id)
            raise InvalidOtpError()

        now = self._clock()
        user = get_user(db, user_id)
        record.is_verified = True
        record.verified_at = now
        user.email_verified = True
        user.email_verified_at = now
        if not user.onboarding_complete:
            user.onboarding_step = OnboardingStep.MOBILE_VERIFICATION
            user.account_status = AccountStatus.PENDING_MOBILE
        db.commit()
        self._logger.info("Email verified for user %s", user_id)
        return user

    def resend_otp(self, db: Session, user_id: uuid.UUID) -> EmailVerification:
        """Drop every outstanding challenge and issue a new one."""

        user = get_user(db, user_id)
        if user.email_verified:
            raise EmailAlreadyVerifiedError()

        db.execute(
            delete(EmailVerification).where(
                EmailVerification.user_id == user_id,
                EmailVerification.is_verified.is_(False),
            )
        )
        return self.send_verification_otp(db, user)

    def cleanup_expired(self, db: Session) -> int:
        result = db.execute(
            delete(EmailVerification).where(
                EmailVerification.is_verified.is_(False),
                EmailVerification.expires_at < self._clock(),
            )
        )
        db.commit()
        return result.rowcount or 0


__all__ = [
    "EmailAlreadyVerifiedError",
    "EmailVerificationError",
    "EmailVerificationService",
    "InvalidOtpError",
    "OtpAlreadyVerifiedError",
    "OtpAttemptsExceededError",
    "OtpExpiredError",
    "VerificationNotFoundError",
]
