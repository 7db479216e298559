"""Tests for email service."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from unittest.mock import MagicMock, patch

import pytest

from controlplane.core.config import Settings
from controlplane.services.email import (
    EmailDeliveryError,
    build_verification_email,
    send_email,
    send_verification_email,
)


def _message() -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = "Test"
    message["From"] = "sender@example.com"
    message["To"] = "recipient@example.com"
    message.set_content("Test content")
    return message


def test_build_verification_email() -> None:
    message = build_verification_email(
        "test@example.com",
        "482910",
        "Pat",
        settings=Settings(EMAIL_SENDER="no-reply@example.com"),
    )

    assert isinstance(message, EmailMessage)
    assert message["To"] == "test@example.com"
    assert message["From"] == "no-reply@example.com"
    assert message["Subject"] == "Your verification code"
    plain = message.get_body(preferencelist=("plain",)).get_content()
    html = message.get_body(preferencelist=("html",)).get_content()
    assert "482910" in plain
    assert "Hi Pat," in plain
    assert "5 minutes" in plain
    assert "482910" in html


def test_build_verification_email_without_name() -> None:
    message = build_verification_email("test@example.com", "123456", expiry_minutes=7)

    plain = message.get_body(preferencelist=("plain",)).get_content()
    assert plain.startswith("Hi,")
    assert "7 minutes" in plain


def test_send_email_success() -> None:
    message = _message()

    with patch("smtplib.SMTP") as mock_smtp_class:
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        send_email(message, settings=Settings(SMTP_HOST="smtp.example.com", SMTP_PORT=2525))

        mock_smtp_class.assert_called_once_with(host="smtp.example.com", port=2525)
        mock_smtp.send_message.assert_called_once_with(message)


def test_send_email_with_tls() -> None:
    message = _message()
    settings = Settings(
        SMTP_HOST="smtp.example.com",
        SMTP_PORT=587,
        SMTP_USERNAME="user",
        SMTP_PASSWORD="pass",
        SMTP_USE_TLS=True,
    )

    with patch("smtplib.SMTP") as mock_smtp_class:
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        send_email(message, settings=settings)

        mock_smtp.starttls.assert_called_once()
        mock_smtp.login.assert_called_once_with("user", "pass")
        mock_smtp.send_message.assert_called_once_with(message)


def test_send_email_without_auth() -> None:
    message = _message()
    settings = Settings(SMTP_HOST="smtp.example.com", SMTP_PORT=25, SMTP_USE_TLS=False)

    with patch("smtplib.SMTP") as mock_smtp_class:
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__.return_value = mock_smtp

        send_email(message, settings=settings)

        mock_smtp.starttls.assert_not_called()
        mock_smtp.login.assert_not_called()
        mock_smtp.send_message.assert_called_once_with(message)


def test_send_email_failure_raises_delivery_error() -> None:
    with patch("smtplib.SMTP") as mock_smtp_class:
        mock_smtp_class.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("nope")

        with pytest.raises(EmailDeliveryError):
            send_email(_message())


def test_send_email_connection_refused_raises_delivery_error() -> None:
    with patch("smtplib.SMTP", side_effect=ConnectionRefusedError()):
        with pytest.raises(EmailDeliveryError):
            send_email(_message())


def test_send_verification_email() -> None:
    with patch("controlplane.services.email.send_email") as mock_send:
        send_verification_email("test@example.com", "654321", "Pat")

        mock_send.assert_called_once()
        message = mock_send.call_args[0][0]
        assert isinstance(message, EmailMessage)
        assert message["To"] == "test@example.com"
        assert "654321" in message.get_body(preferencelist=("plain",)).get_content()


def test_build_verification_email_escapes_name_in_html() -> None:
    message = build_verification_email("a@example.com", "123456", '<a href="https://evil.example">Click</a>')

    html_body = message.get_body(preferencelist=("html",)).get_content()
    plain_body = message.get_body(preferencelist=("plain",)).get_content()
    assert "<a href=" not in html_body
    assert "&lt;a href=&quot;https://evil.example&quot;&gt;Click&lt;/a&gt;" in html_body
    assert '<a href="https://evil.example">Click</a>' in plain_body


def test_send_verification_email_uses_given_settings() -> None:
    settings = Settings(EMAIL_OTP_EXPIRY_MINUTES=7, EMAIL_SENDER="otp@tenant.example")

    with patch("controlplane.services.email.send_email") as mock_send:
        send_verification_email("test@example.com", "654321", settings=settings)

    message = mock_send.call_args[0][0]
    assert mock_send.call_args.kwargs["settings"] is settings
    assert message["From"] == "otp@tenant.example"
    assert "expires in 7 minutes" in message.get_body(preferencelist=("plain",)).get_content()
