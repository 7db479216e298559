"""Onboarding state machine: registration, resume, email step and password set-up."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import BadRequestError, ConflictError, InvalidCredentialsError
from controlplane.core.security import create_onboarding_token, get_password_hash, verify_password
from controlplane.models.user import AccountStatus, OnboardingStep, User
from controlplane.schemas.onboarding import OnboardingStatus
from controlplane.services.email_verification import EmailVerificationService
from controlplane.services.mobile_verification import MobileVerificationService
from controlplane.services.users import (
    complete_onboarding_if_ready,
    get_user,
    get_user_by_email,
    normalize_email,
)

logger = logging.getLogger(__name__)


class UserAlreadyRegisteredError(ConflictError):
    reason = "user_already_registered"
    default_message = "User already exists. Please login."


class InvalidOnboardingStepError(BadRequestError):
    reason = "invalid_onboarding_step"
    default_message = "User is not on the SET_PASSWORD onboarding step."


class PasswordAlreadySetError(BadRequestError):
    reason = "password_already_set"
    default_message = "User already has a password."


class OnboardingService:
    """Moves a user from registration to an ACTIVE account.

    Steps: EMAIL_VERIFICATION -> MOBILE_VERIFICATION -> COMPLETE for the
    password path, SET_PASSWORD -> MOBILE_VERIFICATION -> COMPLETE for users
    created by an OAuth callback.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        email_verification: EmailVerificationService | None = None,
        mobile_verification: MobileVerificationService | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._email_verification = email_verification or EmailVerificationService(settings=self._settings)
        self._mobile_verification = mobile_verification or MobileVerificationService(settings=self._settings)
        self._logger = logger_ or logger

    def _status(self, user: User, *, with_token: bool = False) -> OnboardingStatus:
        token = create_onboarding_token(user.id, settings=self._settings) if with_token else None
        return OnboardingStatus.from_user(user, token)

    def register(
        self,
        db: Session,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> OnboardingStatus:
        """Start onboarding, or resume it for an existing incomplete account."""

        existing = get_user_by_email(db, email)
        if existing is not None:
            if existing.onboarding_complete:
                raise UserAlreadyRegisteredError()
            return self._resume(db, existing, password)
        return self._create(db, email, password, first_name, last_name)

    def _resume(self, db: Session, user: User, password: str) -> OnboardingStatus:
        # Nothing has been proven yet, so the first OTP may never have arrived.
        skip_password_check = not user.email_verified and not user.phone_verified
        if not skip_password_check and user.has_password:
            if not verify_password(password, user.password_hash):
                self._logger.warning("Onboarding resume rejected for user %s: bad password", user.id)
                raise InvalidCredentialsError("Invalid password")

        self._resend_for_current_step(db, user)
        self._logger.info("Resuming onboarding for user %s at step %s", user.id, user.onboarding_step.value)
        return self._status(user, with_token=True)

    def _resend_for_current_step(self, db: Session, user: User) -> None:
        if user.onboarding_step is OnboardingStep.EMAIL_VERIFICATION and not user.email_verified:
            self._email_verification.resend_otp(db, user.id)
        elif user.onboarding_step is OnboardingStep.MOBILE_VERIFICATION and not user.phone_verified:
            self._mobile_verification.resend_verification(db, user.id)

    def _create(
        self,
        db: Session,
        email: str,
        password: str,
        first_name: str | None,
        last_name: str | None,
    ) -> OnboardingStatus:
        user = User(
            email=normalize_email(email),
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            onboarding_step=OnboardingStep.EMAIL_VERIFICATION,
            onboarding_complete=False,
            account_status=AccountStatus.PENDING_EMAIL,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise UserAlreadyRegisteredError() from exc

        self._email_verification.send_verification_otp(db, user)
        self._logger.info("Created user %s and started onboarding", user.id)
        return self._status(user, with_token=True)

    def get_status(self, db: Session, user_id: uuid.UUID) -> OnboardingStatus:
        return self._status(get_user(db, user_id))

    def set_password(self, db: Session, user_id: uuid.UUID, password: str) -> OnboardingStatus:
        """Set the first password for an OAuth-created account and advance to mobile verification."""

        user = get_user(db, user_id)
        if user.onboarding_step is not OnboardingStep.SET_PASSWORD:
            raise InvalidOnboardingStepError()
        if user.has_password:
            raise PasswordAlreadySetError()

        user.password_hash = get_password_hash(password)
        user.onboarding_step = OnboardingStep.MOBILE_VERIFICATION
        user.account_status = AccountStatus.PENDING_MOBILE
        self.complete_if_ready(db, user)
        db.commit()
        self._logger.info("Password set for OAuth user %s", user_id)
        return self._status(user)

    def verify_email(self, db: Session, user_id: uuid.UUID, otp: str) -> OnboardingStatus:
        user = self._email_verification.verify_otp(db, user_id, otp)
        if self.complete_if_ready(db, user):
            db.commit()
        return self._status(user)

    def resend_email_otp(self, db: Session, user_id: uuid.UUID) -> OnboardingStatus:
        self._email_verification.resend_otp(db, user_id)
        return self._status(get_user(db, user_id))

    def complete_if_ready(self, db: Session, user: User) -> bool:
        """Flip the account to COMPLETE/ACTIVE once every prerequisite holds.

        Leaves committing to the caller.
        """

        if not complete_onboarding_if_ready(user):
            return False
        db.flush()
        self._logger.info("Onboarding complete for user %s", user.id)
        return True


__all__ = [
    "InvalidOnboardingStepError",
    "OnboardingService",
    "PasswordAlreadySetError",
    "UserAlreadyRegisteredError",
]
