"""Password login and session lifecycle for onboarded users."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, utcnow
from controlplane.core.exceptions import BadRequestError, ForbiddenError, InvalidCredentialsError
from controlplane.core.security import verify_password
from controlplane.models.user import AccountStatus
from controlplane.schemas.auth import AuthResult, SessionTokens, UserRead
from controlplane.services.sessions import SessionService
from controlplane.services.users import get_user_by_email, record_login

logger = logging.getLogger(__name__)


class OnboardingIncompleteError(BadRequestError):
    reason = "onboarding_incomplete"
    default_message = "Please complete onboarding before logging in."


class AccountNotActiveError(ForbiddenError):
    reason = "account_not_active"
    default_message = "Account is not active. Please contact support."


class AuthService:
    def __init__(
        self,
        *,
        session_service: SessionService | None = None,
        clock: Clock = utcnow,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._sessions = session_service or SessionService(clock=clock)
        self._clock = clock
        self._logger = logger_ or logger

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthResult:
        """Authenticate with email/password and open a new session."""

        user = get_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            self._logger.info("Login rejected: invalid credentials")
            raise InvalidCredentialsError("Invalid email or password.")

        if not user.onboarding_complete:
            raise OnboardingIncompleteError()

        if user.account_status is not AccountStatus.ACTIVE:
            self._logger.warning("Login rejected for user %s: status %s", user.id, user.account_status.value)
            raise AccountNotActiveError()

        record_login(db, user, self._clock())
        tokens = self._sessions.create_session(db, user.id, ip_address, user_agent)
        self._logger.info("User %s logged in", user.id)
        return AuthResult(**tokens.model_dump(), user=UserRead.model_validate(user))

    def refresh(self, db: Session, refresh_token: str) -> SessionTokens:
        return self._sessions.refresh_access_token(db, refresh_token)

    def logout(self, db: Session, access_token: str) -> None:
        self._sessions.invalidate_session(db, access_token)

    def logout_all(self, db: Session, user_id: uuid.UUID) -> int:
        return self._sessions.invalidate_all_user_sessions(db, user_id)


__all__ = ["AccountNotActiveError", "AuthService", "OnboardingIncompleteError"]
