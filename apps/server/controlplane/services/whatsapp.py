"""WhatsApp Cloud API client and message/phone helpers."""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from typing import Any, Dict, Optional

import httpx

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import DeliveryError

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"VER-?([A-Z0-9]{6})", re.IGNORECASE)
_SIGNATURE_PREFIX = "sha256="

# Dialing prefix -> ISO 3166 alpha-2. Matched longest prefix first.
COUNTRY_DIALING_CODES: Dict[str, str] = {
    "1": "US",
    "7": "RU",
    "27": "ZA",
    "33": "FR",
    "34": "ES",
    "39": "IT",
    "44": "GB",
    "49": "DE",
    "55": "BR",
    "61": "AU",
    "81": "JP",
    "82": "KR",
    "86": "CN",
    "91": "IN",
}
UNKNOWN_COUNTRY = "unknown"


class WhatsAppDeliveryError(DeliveryError):
    reason = "whatsapp_delivery_failed"
    default_message = "WhatsApp message could not be sent."


def extract_verification_token(text: str | None) -> Optional[str]:
    """Find a ``VER``/``VER-`` code anywhere in free text and normalise it to ``VERXXXXXX``."""

    if not text:
        return None
    match = _TOKEN_PATTERN.search(text)
    if match is None:
        return None
    return f"VER{match.group(1).upper()}"


def normalize_phone_number(phone: str) -> str:
    """Return ``phone`` in leading-``+`` E.164 form."""

    digits = re.sub(r"\D", "", phone)
    return f"+{digits}"


def extract_country_code(phone: str) -> str:
    """Best-effort ISO country from the dialing prefix of an E.164 number."""

    digits = phone[1:] if phone.startswith("+") else phone
    for length in range(3, 0, -1):
        country = COUNTRY_DIALING_CODES.get(digits[:length])
        if country:
            return country
    logger.debug("No dialing-code match for phone prefix %s", digits[:3])
    return UNKNOWN_COUNTRY


def validate_webhook_signature(raw_body: bytes, signature_header: str | None, app_secret: str) -> bool:
    """Check ``X-Hub-Signature-256`` (``sha256=<hex>``) against the raw request body."""

    if not signature_header or not app_secret:
        return False
    if not signature_header.startswith(_SIGNATURE_PREFIX):
        return False

    provided = signature_header[len(_SIGNATURE_PREFIX):].strip().lower()
    expected = hmac.new(app_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(provided.encode("ascii", "ignore"), expected.encode("ascii"))


def _recipient(phone: str) -> str:
    return phone[1:] if phone.startswith("+") else phone


class WhatsAppClient:
    """Thin async client for the Graph API ``/messages`` endpoint."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings if settings is not None else default_settings
        if not (
            self._settings.whatsapp_phone_number_id
            and self._settings.whatsapp_access_token
            and self._settings.whatsapp_app_secret
        ):
            logger.warning("WhatsApp configuration is incomplete; outbound messages will fail")

    @property
    def messages_url(self) -> str:
        base = self._settings.whatsapp_api_base_url.rstrip("/")
        return f"{base}/{self._settings.whatsapp_api_version}/{self._settings.whatsapp_phone_number_id}/messages"

    async def _post_message(self, payload: Dict[str, Any]) -> str:
        async with httpx.AsyncClient(timeout=self._settings.whatsapp_request_timeout_seconds) as client:
            try:
                response = await client.post(
                    self.messages_url,
                    headers={
                        "Authorization": f"Bearer {self._settings.whatsapp_access_token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as exc:
                raise WhatsAppDeliveryError(f"WhatsApp API request failed: {type(exc).__name__}") from exc

        messages = data.get("messages") or []
        if not messages or not messages[0].get("id"):
            raise WhatsAppDeliveryError("WhatsApp API response did not include a message id.")
        return messages[0]["id"]

    async def send_text_message(self, to_phone: str, body: str) -> str:
        """Send a plain text message, returning the provider message id."""

        message_id = await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": _recipient(to_phone),
                "type": "text",
                "text": {"body": body},
            }
        )
        logger.info("WhatsApp message %s sent", message_id)
        return message_id

    async def send_verification_message(self, to_phone: str, verification_token: str) -> str:
        minutes = self._settings.mobile_verification_expiry_minutes
        return await self.send_text_message(
            to_phone,
            (
                f"Your verification code is: {verification_token}\n\n"
                "Reply with this code to verify your phone number.\n\n"
                f"This code expires in {minutes} minutes."
            ),
        )

    async def send_verification_template(
        self,
        to_phone: str,
        verification_token: str,
        template_name: str = "verification_code",
    ) -> str:
        """Send an approved template, falling back to plain text if the template is rejected."""

        try:
            return await self._post_message(
                {
                    "messaging_product": "whatsapp",
                    "to": _recipient(to_phone),
                    "type": "template",
                    "template": {
                        "name": template_name,
                        "language": {"code": "en_US"},
                        "components": [
                            {
                                "type": "body",
                                "parameters": [{"type": "text", "text": verification_token}],
                            }
                        ],
                    },
                }
            )
        except WhatsAppDeliveryError:
            logger.warning("WhatsApp template %s failed, falling back to text message", template_name)
            return await self.send_verification_message(to_phone, verification_token)

    async def send_confirmation_message(self, to_phone: str) -> str:
        return await self.send_text_message(
            to_phone,
            "Your phone number has been verified. You can return to the app to continue.",
        )


__all__ = [
    "COUNTRY_DIALING_CODES",
    "UNKNOWN_COUNTRY",
    "WhatsAppClient",
    "WhatsAppDeliveryError",
    "extract_country_code",
    "extract_verification_token",
    "normalize_phone_number",
    "validate_webhook_signature",
]
