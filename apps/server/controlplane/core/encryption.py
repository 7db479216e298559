"""Encryption utilities for securing third-party credentials at rest."""

from __future__ import annotations

import base64
import os

from cryptography.fernet import Fernet

from controlplane.core.config import Settings, settings as default_settings


def get_encryption_key(settings: Settings | None = None) -> bytes:
    """Resolve the configured Fernet key, validating it is usable."""

    cfg = settings if settings is not None else default_settings
    key: str | bytes | None = cfg.encryption_key or os.environ.get("ENCRYPTION_KEY")
    if not key:
        raise RuntimeError("ENCRYPTION_KEY environment variable or setting must be configured")

    key_bytes = key.encode("utf-8") if isinstance(key, str) else key

    try:
        decoded = base64.urlsafe_b64decode(key_bytes)
    except (ValueError, TypeError) as exc:
        raise ValueError("ENCRYPTION_KEY must be a 32-byte url-safe base64 string") from exc

    if len(decoded) != 32:
        raise ValueError("ENCRYPTION_KEY must decode to exactly 32 bytes for Fernet")

    return key_bytes


def _cipher(settings: Settings | None) -> Fernet:
    return Fernet(get_encryption_key(settings))


def encrypt_secret(value: str | None, *, settings: Settings | None = None) -> str | None:
    """Encrypt a token or password using Fernet encryption."""
    if value is None:
        return None
    return _cipher(settings).encrypt(value.encode()).decode()


def decrypt_secret(encrypted_value: str | None, *, settings: Settings | None = None) -> str | None:
    """Decrypt a value produced by :func:`encrypt_secret`."""
    if encrypted_value is None:
        return None
    return _cipher(settings).decrypt(encrypted_value.encode()).decode()


__all__ = [
    "decrypt_secret",
    "encrypt_secret",
    "get_encryption_key",
]
