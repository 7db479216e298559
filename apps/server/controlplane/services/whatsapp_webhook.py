"""Inbound WhatsApp webhook: subscription handshake and verification messages."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict

from fastapi import BackgroundTasks
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import sessionmaker

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import UnauthorizedError, ValidationError
from controlplane.db.session import SessionLocal, session_scope
from controlplane.schemas.whatsapp import WhatsAppMessage, WhatsAppWebhookPayload
from controlplane.services.mobile_verification import MobileVerificationService
from controlplane.services.whatsapp import (
    WhatsAppClient,
    WhatsAppDeliveryError,
    extract_verification_token,
    validate_webhook_signature,
)

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"


class WebhookVerificationError(UnauthorizedError):
    reason = "webhook_verification_failed"
    default_message = "Invalid verification token."


class WebhookSignatureError(UnauthorizedError):
    reason = "webhook_signature_invalid"
    default_message = "Invalid webhook signature."


class WebhookPayloadError(ValidationError):
    reason = "webhook_payload_invalid"
    default_message = "Webhook payload could not be parsed."


class WhatsAppWebhookHandler:
    """Acknowledges webhook deliveries quickly and reconciles messages in the background."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: sessionmaker = SessionLocal,
        verification_service: MobileVerificationService | None = None,
        client: WhatsAppClient | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._session_factory = session_factory
        self._verification_service = verification_service or MobileVerificationService(settings=self._settings)
        self._client = client or WhatsAppClient(self._settings)
        self._logger = logger_ or logger
        if not self._settings.whatsapp_verify_token:
            self._logger.warning("WHATSAPP_VERIFY_TOKEN is not configured; webhook verification will fail")

    def verify_subscription(self, mode: str | None, verify_token: str | None, challenge: str | None) -> str:
        """Answer Meta's subscription handshake by echoing ``challenge``."""

        expected = self._settings.whatsapp_verify_token
        if mode == SUBSCRIBE_MODE and expected and verify_token == expected:
            self._logger.info("Webhook subscription verified")
            return challenge or ""

        self._logger.warning("Webhook subscription rejected (mode: %s)", mode)
        raise WebhookVerificationError()

    def accept(
        self,
        raw_body: bytes,
        signature: str | None,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, str]:
        """Authenticate and parse a delivery, then hand it to a background task.

        The signature is checked against the raw bytes before any field of
        the payload is read.
        """

        if not validate_webhook_signature(raw_body, signature, self._settings.whatsapp_app_secret):
            self._logger.error("Webhook rejected: invalid signature")
            raise WebhookSignatureError()

        try:
            payload = WhatsAppWebhookPayload.model_validate(json.loads(raw_body))
        except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError) as exc:
            self._logger.warning("Webhook rejected: malformed payload")
            raise WebhookPayloadError() from exc

        background_tasks.add_task(self.process_payload, payload)
        return {"status": "ok"}

    async def process_payload(self, payload: WhatsAppWebhookPayload) -> None:
        """Reconcile every text message in ``payload``.

        Failures are logged and dropped; Meta has already been acknowledged
        and nothing is retried.
        """

        for entry in payload.entry:
            for change in entry.changes:
                if change.field != "messages":
                    continue
                for message in change.value.messages or []:
                    try:
                        await self._handle_message(message)
                    except Exception:
                        self._logger.exception("Error processing WhatsApp message %s", message.id)

    def _verify_token(self, token: str, phone_number: str) -> bool:
        with session_scope(self._session_factory) as db:
            return self._verification_service.verify_from_webhook(db, token, phone_number)

    async def _handle_message(self, message: WhatsAppMessage) -> None:
        if message.type != "text" or message.text is None or not message.text.body.strip():
            self._logger.info("Skipping non-text WhatsApp message %s (%s)", message.id, message.type)
            return

        token = extract_verification_token(message.text.body)
        if token is None:
            self._logger.info("No verification token in WhatsApp message %s", message.id)
            return

        verified = await asyncio.to_thread(self._verify_token, token, message.from_)

        if not verified:
            self._logger.warning("WhatsApp message %s did not verify a phone", message.id)
            return

        self._logger.info("WhatsApp message %s verified a phone", message.id)
        try:
            await self._client.send_confirmation_message(message.from_)
        except WhatsAppDeliveryError:
            self._logger.warning("Confirmation message for %s could not be delivered", message.id)


__all__ = [
    "WebhookPayloadError",
    "WebhookSignatureError",
    "WebhookVerificationError",
    "WhatsAppWebhookHandler",
]
