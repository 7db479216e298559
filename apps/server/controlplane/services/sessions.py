"""Persistent access/refresh session pairs."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, is_expired, utcnow
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import UnauthorizedError
from controlplane.core.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from controlplane.models.session import UserSession
from controlplane.schemas.auth import SessionTokens

logger = logging.getLogger(__name__)


class SessionInvalidError(UnauthorizedError):
    reason = "session_invalid"
    default_message = "Invalid or inactive session."


class SessionExpiredError(UnauthorizedError):
    reason = "session_expired"
    default_message = "Session has expired. Please log in again."


class SessionService:
    """Issues token pairs and tracks them as rows so they can be revoked."""

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
    def access_lifetime(self) -> timedelta:
        return timedelta(minutes=self._settings.access_token_expire_minutes)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self._settings.refresh_token_expire_days)

    def _tokens(self, session: UserSession) -> SessionTokens:
        return SessionTokens(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=int(self.access_lifetime.total_seconds()),
        )

    def _find_by_refresh_token(self, db: Session, refresh_token: str) -> Optional[UserSession]:
        statement = select(UserSession).where(UserSession.refresh_token == refresh_token)
        return db.execute(statement).scalar_one_or_none()

    def _find_by_access_token(self, db: Session, access_token: str) -> Optional[UserSession]:
        statement = select(UserSession).where(UserSession.access_token == access_token)
        return db.execute(statement).scalar_one_or_none()

    def create_session(
        self,
        db: Session,
        user_id: uuid.UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SessionTokens:
        now = self._clock()
        session = UserSession(
            user_id=user_id,
            access_token=create_access_token(user_id, settings=self._settings),
            refresh_token=create_refresh_token(user_id, settings=self._settings),
            access_token_expires_at=now + self.access_lifetime,
            refresh_token_expires_at=now + self.refresh_lifetime,
            is_active=True,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(session)
        db.commit()
        self._logger.info("Session %s created for user %s", session.id, user_id)
        return self._tokens(session)

    def refresh_access_token(self, db: Session, refresh_token: str) -> SessionTokens:
        """Mint a new access token for the session owning ``refresh_token``.

        The refresh token itself is returned unchanged. The access token is
        written with a conditional update so a session revoked concurrently
        is never revived.
        """

        claims = decode_token(refresh_token, TokenType.REFRESH, settings=self._settings)

        session = self._find_by_refresh_token(db, refresh_token)
        if session is None or not session.is_active:
            raise SessionInvalidError()

        now = self._clock()
        if is_expired(session.refresh_token_expires_at, now):
            session.is_active = False
            db.commit()
            self._logger.info("Session %s expired on refresh", session.id)
            raise SessionExpiredError()

        access_token = create_access_token(claims.user_id, settings=self._settings)
        result = db.execute(
            update(UserSession)
            .where(UserSession.id == session.id, UserSession.is_active.is_(True))
            .values(
                access_token=access_token,
                access_token_expires_at=now + self.access_lifetime,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            db.rollback()
            raise SessionInvalidError()
        db.commit()
        db.refresh(session)

        self._logger.info("Access token refreshed for session %s", session.id)
        return self._tokens(session)

    def invalidate_session(self, db: Session, access_token: str) -> None:
        """Deactivate the session owning ``access_token``; unknown tokens are ignored."""

        session = self._find_by_access_token(db, access_token)
        if session is None:
            return
        session.is_active = False
        db.commit()
        self._logger.info("Session %s invalidated", session.id)

    def invalidate_all_user_sessions(self, db: Session, user_id: uuid.UUID) -> int:
        result = db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        count = result.rowcount or 0
        self._logger.info("Invalidated %d sessions for user %s", count, user_id)
        return count

    def get_user_active_sessions(self, db: Session, user_id: uuid.UUID) -> List[UserSession]:
        statement = (
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
                UserSession.refresh_token_expires_at > self._clock(),
            )
            .order_by(UserSession.created_at.desc())
        )
        return list(db.execute(statement).scalars())

    def validate_access_token(self, db: Session, access_token: str) -> UserSession:
        decode_token(access_token, TokenType.ACCESS, settings=self._settings)

        session = self._find_by_access_token(db, access_token)
        if session is None or not session.is_active:
            raise SessionInvalidError()
        if is_expired(session.access_token_expires_at, self._clock()):
            raise SessionExpiredError()
        return session

    def cleanup_expired(self, db: Session) -> int:
        result = db.execute(
            delete(UserSession)
            .where(UserSession.refresh_token_expires_at < self._clock())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount or 0


__all__ = ["SessionExpiredError", "SessionInvalidError", "SessionService"]
