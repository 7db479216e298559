"""WhatsApp-relayed phone verification ledger."""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, is_expired, utcnow
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import BadRequestError, NotFoundError
from controlplane.models.mobile_verification import MobileVerification, MobileVerificationMethod
from controlplane.schemas.onboarding import MobileVerificationStatus
from controlplane.services.users import (
    complete_onboarding_if_ready,
    get_user,
    is_phone_verified_by_other_user,
)
from controlplane.services.whatsapp import (
    WhatsAppClient,
    extract_country_code,
    normalize_phone_number,
)

logger = logging.getLogger(__name__)

VERIFICATION_TOKEN_PREFIX = "VER"
_TOKEN_GENERATION_ATTEMPTS = 5


class PhoneAlreadyVerifiedError(BadRequestError):
    reason = "phone_already_verified"
    default_message = "Phone number already verified."


class MobileVerificationNotFoundError(NotFoundError):
    reason = "mobile_verification_not_found"
    default_message = "No mobile verification found. Please initiate verification first."


def generate_verification_token() -> str:
    """``VER`` followed by six uppercase hex characters."""

    return f"{VERIFICATION_TOKEN_PREFIX}{secrets.token_hex(3).upper()}"


class MobileVerificationService:
    """Creates relay tokens and reconciles them against inbound webhook messages."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        clock: Clock = utcnow,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._clock = clock
        self._logger = logger_ or logger

    @property
    def max_attempts(self) -> int:
        return self._settings.mobile_verification_max_attempts

    def get_latest(self, db: Session, user_id: uuid.UUID) -> Optional[MobileVerification]:
        statement = (
            select(MobileVerification)
            .where(MobileVerification.user_id == user_id)
            .order_by(MobileVerification.created_at.desc(), MobileVerification.expires_at.desc())
            .limit(1)
        )
        return db.execute(statement).scalar_one_or_none()

    def find_by_token(self, db: Session, token: str) -> Optional[MobileVerification]:
        statement = select(MobileVerification).where(MobileVerification.qr_verification_id == token)
        return db.execute(statement).scalar_one_or_none()

    def initiate_verification(
        self,
        db: Session,
        user_id: uuid.UUID,
        method: MobileVerificationMethod = MobileVerificationMethod.WHATSAPP_QR,
    ) -> MobileVerificationStatus:
        """Return the user's live verification, creating one if none is pending."""

        user = get_user(db, user_id)
        if user.phone_verified:
            raise PhoneAlreadyVerifiedError()

        existing = self.get_latest(db, user_id)
        if (
            existing is not None
            and not existing.is_verified
            and not is_expired(existing.expires_at, self._clock())
        ):
            self._logger.info("Reusing pending mobile verification %s for user %s", existing.id, user_id)
            return self._build_status(existing)

        for _ in range(_TOKEN_GENERATION_ATTEMPTS):
            token = generate_verification_token()
            if self.find_by_token(db, token) is None:
                break
        else:
            raise RuntimeError("Could not allocate a unique verification token")

        verification = MobileVerification(
            user_id=user_id,
            phone="",
            phone_country="",
            method=method,
            qr_verification_id=token,
            is_verified=False,
            attempts=0,
            expires_at=self._clock() + timedelta(minutes=self._settings.mobile_verification_expiry_minutes),
        )
        db.add(verification)
        db.commit()
        self._logger.info("Created mobile verification %s for user %s", verification.id, user_id)
        return self._build_status(verification)

    def verify_from_webhook(self, db: Session, token: str, phone_number: str) -> bool:
        """Claim ``phone_number`` for the owner of ``token``.

        Never raises for a rejected claim; the reason is logged and ``False``
        returned so the webhook can be acknowledged regardless.
        """

        verification = self.find_by_token(db, token)
        if verification is None:
            self._logger.warning("Webhook verification rejected: unknown token")
            return False

        if verification.is_verified:
            self._logger.warning("Webhook verification rejected: %s already verified", verification.id)
            return False

        now = self._clock()
        if is_expired(verification.expires_at, now):
            self._logger.warning("Webhook verification rejected: %s expired", verification.id)
            return False

        if verification.attempts >= self.max_attempts:
            self._logger.warning("Webhook verification rejected: %s attempts exceeded", verification.id)
            return False

        phone = normalize_phone_number(phone_number)
        if is_phone_verified_by_other_user(db, phone, verification.user_id):
            db.execute(
                update(MobileVerification)
                .where(MobileVerification.id == verification.id)
                .values(attempts=MobileVerification.attempts + 1)
            )
            db.commit()
            self._logger.warning(
                "Webhook verification rejected: phone already claimed by another user (verification %s)",
                verification.id,
            )
            return False

        country = extract_country_code(phone)
        user = get_user(db, verification.user_id)
        verification.phone = phone
        verification.phone_country = country
        verification.is_verified = True
        verification.verified_at = now
        user.phone = phone
        user.phone_country = country
        user.phone_verified = True
        user.phone_verified_at = now
        completed = complete_onboarding_if_ready(user)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            self._logger.warning(
                "Webhook verification rejected: concurrent claim on phone (verification %s)",
                verification.id,
            )
            return False

        self._logger.info(
            "Phone verified for user %s (onboarding complete: %s)", verification.user_id, completed
        )
        return True

    def get_verification_status(self, db: Session, user_id: uuid.UUID) -> MobileVerificationStatus:
        get_user(db, user_id)
        verification = self.get_latest(db, user_id)
        if verification is None:
            raise MobileVerificationNotFoundError()
        return self._build_status(verification)

    def resend_verification(self, db: Session, user_id: uuid.UUID) -> MobileVerificationStatus:
        """Discard the pending token and issue a new one."""

        db.execute(
            delete(MobileVerification).where(
                MobileVerification.user_id == user_id,
                MobileVerification.is_verified.is_(False),
            )
        )
        db.flush()
        return self.initiate_verification(db, user_id)

    async def dispatch_verification_token(
        self,
        db: Session,
        user_id: uuid.UUID,
        phone: str,
        client: WhatsAppClient,
    ) -> str:
        """Push the user's live token to ``phone`` over WhatsApp and return the message id."""

        status = self.initiate_verification(db, user_id)
        message_id = await client.send_verification_message(normalize_phone_number(phone), status.verification_token)
        self._logger.info("Verification token for user %s dispatched as message %s", user_id, message_id)
        return message_id

    def cleanup_expired(self, db: Session) -> int:
        result = db.execute(
            delete(MobileVerification).where(
                MobileVerification.is_verified.is_(False),
                MobileVerification.expires_at < self._clock(),
            )
        )
        db.commit()
        return result.rowcount or 0

    def _build_status(self, verification: MobileVerification) -> MobileVerificationStatus:
        expired = is_expired(verification.expires_at, self._clock())
        if verification.is_verified:
            message = "Phone number verified successfully"
        elif expired:
            message = "Verification expired. Please request a new verification."
        else:
            message = "Waiting for verification"

        instructions = None
        if not verification.is_verified:
            target = self._settings.whatsapp_business_number or "our WhatsApp Business number"
            instructions = (
                f'Send the verification code "{verification.qr_verification_id}" '
                f"to {target} on WhatsApp to verify your phone."
            )

        return MobileVerificationStatus(
            verification_id=verification.id,
            method=verification.method,
            verification_token=verification.qr_verification_id,
            is_verified=verification.is_verified,
            phone=verification.phone if verification.is_verified else None,
            expires_at=verification.expires_at,
            message=message,
            instructions=instructions,
        )


__all__ = [
    "MobileVerificationNotFoundError",
    "MobileVerificationService",
    "PhoneAlreadyVerifiedError",
    "VERIFICATION_TOKEN_PREFIX",
    "generate_verification_token",
]
