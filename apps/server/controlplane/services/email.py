"""Utilities for sending transactional emails."""

from __future__ import annotations

import html
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import DeliveryError


class EmailDeliveryError(DeliveryError):
    """Raised when an email could not be delivered."""

    reason = "email_delivery_failed"
    default_message = "Verification email could not be sent."


class VerificationEmailSender(Protocol):
    def __call__(self, to: str, otp: str, name: Optional[str] = None) -> None: ...


def build_verification_email(
    recipient: str,
    otp: str,
    name: str | None = None,
    *,
    settings: Settings | None = None,
    expiry_minutes: int | None = None,
) -> EmailMessage:
    """Construct the OTP email message."""

    cfg = settings if settings is not None else default_settings
    minutes = expiry_minutes if expiry_minutes is not None else cfg.email_otp_expiry_minutes
    greeting = f"Hi {name}," if name else "Hi,"
    html_greeting = f"Hi {html.escape(name)}," if name else "Hi,"

    message = EmailMessage()
    message["Subject"] = "Your verification code"
    message["From"] = cfg.email_sender
    message["To"] = recipient
    message.set_content(
        (
            f"{greeting}\n\n"
            f"Your verification code is: {otp}\n\n"
            f"This code expires in {minutes} minutes.\n\n"
            "If you did not request this code, you can ignore this email."
        )
    )
    message.add_alternative(
        (
            f"<p>{html_greeting}</p>"
            "<p>Your verification code is:</p>"
            f"<p style=\"font-size:24px;letter-spacing:4px\"><strong>{otp}</strong></p>"
            f"<p>This code expires in {minutes} minutes.</p>"
            "<p>If you did not request this code, you can ignore this email.</p>"
        ),
        subtype="html",
    )
    return message


def send_email(message: EmailMessage, *, settings: Settings | None = None) -> None:
    """Send an email using the configured SMTP server."""

    cfg = settings if settings is not None else default_settings
    username = cfg.smtp_username or None
    password = cfg.smtp_password or None

    try:
        with smtplib.SMTP(host=cfg.smtp_host, port=cfg.smtp_port) as smtp:
            if cfg.smtp_use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError() from exc


def send_verification_email(
    to: str,
    otp: str,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> None:
    """High-level helper for dispatching OTP emails."""

    send_email(build_verification_email(to, otp, name, settings=settings), settings=settings)


__all__ = [
    "EmailDeliveryError",
    "VerificationEmailSender",
    "build_verification_email",
    "send_email",
    "send_verification_email",
]
