"""Signed, single-use OAuth state tokens (CSRF protection + PKCE verifier storage)."""

from __future__ import annotations

import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, is_expired, utcnow
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import UnauthorizedError
from controlplane.core.security import constant_time_equals, sign_hmac_hex
from controlplane.models.oauth_provider import OAuthProviderType
from controlplane.models.oauth_state import OAuthState

logger = logging.getLogger(__name__)

_STATE_FORMAT = re.compile(r"^[0-9a-f]{64}\.[0-9a-f]{64}$")


class OAuthStateInvalidError(UnauthorizedError):
    reason = "oauth_state_invalid"
    default_message = "Invalid or already used OAuth state."


class OAuthStateExpiredError(UnauthorizedError):
    reason = "oauth_state_expired"
    default_message = "OAuth state has expired. Please start the sign-in again."


@dataclass(frozen=True)
class OAuthStateData:
    provider: OAuthProviderType
    user_id: Optional[uuid.UUID]
    code_verifier: str


class OAuthStateService:
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

    def _sign(self, token: str) -> str:
        return sign_hmac_hex(self._settings.csrf_hmac_key, token)

    def generate_state(
        self,
        db: Session,
        provider: OAuthProviderType,
        user_id: uuid.UUID | None,
        code_verifier: str,
    ) -> str:
        """Persist a new state and return its signed ``token.signature`` form."""

        token = secrets.token_hex(32)
        signed_token = f"{token}.{self._sign(token)}"
        db.add(
            OAuthState(
                state_token=signed_token,
                provider=provider,
                user_id=user_id,
                code_verifier=code_verifier,
                expires_at=self._clock() + timedelta(minutes=self._settings.oauth_state_expiry_minutes),
            )
        )
        db.commit()
        self._logger.info("OAuth state issued for provider %s", provider.value)
        return signed_token

    def verify_signature(self, signed_token: str) -> bool:
        if not signed_token or not _STATE_FORMAT.match(signed_token):
            return False
        token, signature = signed_token.split(".")
        return constant_time_equals(signature, self._sign(token))

    def validate_and_consume_state(self, db: Session, signed_token: str) -> OAuthStateData:
        """Consume a state exactly once.

        Format and signature are checked before touching the database. The row
        is removed with a single ``DELETE ... RETURNING`` so two concurrent
        callbacks presenting the same state cannot both succeed.
        """

        if not self.verify_signature(signed_token):
            self._logger.warning("OAuth state rejected: malformed or bad signature")
            raise OAuthStateInvalidError()

        statement = (
            delete(OAuthState)
            .where(OAuthState.state_token == signed_token)
            .returning(
                OAuthState.provider,
                OAuthState.user_id,
                OAuthState.code_verifier,
                OAuthState.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        row = db.execute(statement).first()
        db.commit()

        if row is None:
            self._logger.warning("OAuth state rejected: not found or already consumed")
            raise OAuthStateInvalidError()

        if is_expired(row.expires_at, self._clock()):
            self._logger.warning("OAuth state rejected: expired")
            raise OAuthStateExpiredError()

        return OAuthStateData(
            provider=OAuthProviderType(row.provider),
            user_id=row.user_id,
            code_verifier=row.code_verifier,
        )

    def cleanup_expired_states(self, db: Session) -> int:
        result = db.execute(
            delete(OAuthState)
            .where(OAuthState.expires_at < self._clock())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        count = result.rowcount or 0
        if count:
            self._logger.info("Removed %d expired OAuth states", count)
        return count


__all__ = [
    "OAuthStateData",
    "OAuthStateExpiredError",
    "OAuthStateInvalidError",
    "OAuthStateService",
]
