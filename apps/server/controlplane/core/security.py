"""Security helpers for password/OTP hashing, PKCE and JWT handling."""

from __future__ import annotations

import base64
import enum
import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from authlib.oauth2.rfc7636 import create_s256_code_challenge
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import UnauthorizedError


_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

OTP_LENGTH = 6
PKCE_METHOD = "S256"


class TokenType(str, enum.Enum):
    """Audience carried in the ``type`` claim of every issued JWT."""

    ONBOARDING = "onboarding"
    ACCESS = "access"
    REFRESH = "refresh"


class InvalidTokenError(UnauthorizedError):
    reason = "invalid_token"
    default_message = "Token is invalid or has expired."


class TokenTypeMismatchError(UnauthorizedError):
    reason = "token_type_mismatch"
    default_message = "Token is not valid for this operation."


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a decoded token."""

    subject: str
    token_type: TokenType
    expires_at: datetime
    token_id: str

    @property
    def user_id(self) -> uuid.UUID:
        return uuid.UUID(self.subject)


def _resolve(settings: Settings | None) -> Settings:
    return settings if settings is not None else default_settings


def get_password_hash(password: str) -> str:
    """Hash a plaintext password using a secure bcrypt context."""
    return _pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a plaintext password against a hashed password."""

    if not hashed_password:
        return False
    return _pwd_context.verify(plain_password, hashed_password)


def generate_otp(length: int = OTP_LENGTH) -> str:
    """Return a numeric one-time code drawn from a CSPRNG."""

    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_otp(otp: str) -> str:
    return _pwd_context.hash(otp)


def verify_otp(otp: str, otp_hash: str) -> bool:
    return _pwd_context.verify(otp, otp_hash)


def generate_code_verifier() -> str:
    """Generate a 256-bit PKCE code verifier, base64url encoded without padding."""

    return base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier (RFC 7636)."""

    return create_s256_code_challenge(code_verifier)


def sign_hmac_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def constant_time_equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def _default_lifetime(token_type: TokenType, settings: Settings) -> timedelta:
    if token_type is TokenType.ONBOARDING:
        return timedelta(minutes=settings.onboarding_token_expire_minutes)
    if token_type is TokenType.ACCESS:
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(days=settings.refresh_token_expire_days)


def create_token(
    *,
    subject: str | uuid.UUID,
    token_type: TokenType,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a signed JWT for one audience.

    Args:
        subject: Identifier for the token subject (stringified UUID expected).
        token_type: Audience written to the ``type`` claim and checked on decode.
        expires_delta: Optional custom lifetime; defaults to the configured one for the type.
        extra_claims: Optional additional claims to include in the token payload.
        settings: Settings carrying the signing secret; defaults to the process settings.
    """

    cfg = _resolve(settings)
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (expires_delta or _default_lifetime(token_type, cfg))
    payload: dict[str, Any] = {
        "sub": str(subject),
        "type": token_type.value,
        "iss": cfg.jwt_issuer,
        "iat": issued_at,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, cfg.secret_key, algorithm=cfg.jwt_algorithm)


def decode_token(token: str, expected_type: TokenType, *, settings: Settings | None = None) -> TokenClaims:
    """Verify signature, expiry, issuer and audience of a token."""

    cfg = _resolve(settings)
    try:
        payload = jwt.decode(
            token,
            cfg.secret_key,
            algorithms=[cfg.jwt_algorithm],
            issuer=cfg.jwt_issuer,
        )
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("Token has expired.") from exc
    except JWTError as exc:
        raise InvalidTokenError() from exc

    if payload.get("type") != expected_type.value:
        raise TokenTypeMismatchError()

    subject = payload.get("sub")
    if not subject:
        raise InvalidTokenError()
    try:
        uuid.UUID(str(subject))
    except ValueError as exc:
        raise InvalidTokenError() from exc

    return TokenClaims(
        subject=str(subject),
        token_type=expected_type,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        token_id=str(payload.get("jti", "")),
    )


def create_onboarding_token(user_id: uuid.UUID, *, settings: Settings | None = None) -> str:
    return create_token(subject=user_id, token_type=TokenType.ONBOARDING, settings=settings)


def create_access_token(user_id: uuid.UUID, *, settings: Settings | None = None) -> str:
    return create_token(subject=user_id, token_type=TokenType.ACCESS, settings=settings)


def create_refresh_token(user_id: uuid.UUID, *, settings: Settings | None = None) -> str:
    return create_token(subject=user_id, token_type=TokenType.REFRESH, settings=settings)


__all__ = [
    "InvalidTokenError",
    "OTP_LENGTH",
    "PKCE_METHOD",
    "TokenClaims",
    "TokenType",
    "TokenTypeMismatchError",
    "constant_time_equals",
    "create_access_token",
    "create_onboarding_token",
    "create_refresh_token",
    "create_token",
    "decode_token",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_otp",
    "get_password_hash",
    "hash_otp",
    "sign_hmac_hex",
    "verify_otp",
    "verify_password",
]
