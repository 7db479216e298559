"""Tests for persistent session pairs."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import update

from controlplane.core.security import (
    InvalidTokenError,
    TokenType,
    TokenTypeMismatchError,
    create_refresh_token,
    decode_token,
)
from controlplane.models.session import UserSession
from controlplane.services.sessions import SessionExpiredError, SessionInvalidError, SessionService


@pytest.fixture()
def service(test_settings, clock) -> SessionService:
    return SessionService(settings=test_settings, clock=clock)


def test_create_session_issues_token_pair(db_session, active_user, service, test_settings) -> None:
    tokens = service.create_session(db_session, active_user.id, "203.0.113.5", "pytest")

    assert tokens.token_type == "Bearer"
    assert tokens.expires_in == 15 * 60
    assert decode_token(tokens.access_token, TokenType.ACCESS, settings=test_settings).user_id == active_user.id
    assert decode_token(tokens.refresh_token, TokenType.REFRESH, settings=test_settings).user_id == active_user.id

    session = service.validate_access_token(db_session, tokens.access_token)
    assert session.ip_address == "203.0.113.5"
    assert session.user_agent == "pytest"
    assert session.is_active is True


def test_refresh_rotates_access_token_only(db_session, active_user, service, clock) -> None:
    tokens = service.create_session(db_session, active_user.id)
    clock.advance(minutes=20)

    refreshed = service.refresh_access_token(db_session, tokens.refresh_token)

    assert refreshed.refresh_token == tokens.refresh_token
    assert refreshed.access_token != tokens.access_token
    assert service.validate_access_token(db_session, refreshed.access_token).user_id == active_user.id
    with pytest.raises(SessionInvalidError):
        service.validate_access_token(db_session, tokens.access_token)


def test_refresh_rejects_access_token(db_session, active_user, service) -> None:
    tokens = service.create_session(db_session, active_user.id)

    with pytest.raises(TokenTypeMismatchError):
        service.refresh_access_token(db_session, tokens.access_token)


def test_refresh_rejects_unknown_refresh_token(db_session, service, test_settings) -> None:
    with pytest.raises(SessionInvalidError):
        service.refresh_access_token(db_session, create_refresh_token(uuid.uuid4(), settings=test_settings))


def test_refresh_after_logout_is_rejected(db_session, active_user, service) -> None:
    tokens = service.create_session(db_session, active_user.id)
    service.invalidate_session(db_session, tokens.access_token)

    with pytest.raises(SessionInvalidError):
        service.refresh_access_token(db_session, tokens.refresh_token)


def test_refresh_does_not_revive_session_revoked_mid_refresh(db_session, active_user, service) -> None:
    tokens = service.create_session(db_session, active_user.id)
    lookup = service._find_by_refresh_token

    def _lookup_then_revoke(db, refresh_token):
        session = lookup(db, refresh_token)
        db.execute(
            update(UserSession)
            .where(UserSession.id == session.id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return session

    service._find_by_refresh_token = _lookup_then_revoke

    with pytest.raises(SessionInvalidError):
        service.refresh_access_token(db_session, tokens.refresh_token)

    db_session.expire_all()
    session = db_session.query(UserSession).filter_by(refresh_token=tokens.refresh_token).one()
    assert session.is_active is False
    assert session.access_token == tokens.access_token


def test_refresh_of_expired_session_deactivates_it(db_session, active_user, service, clock) -> None:
    tokens = service.create_session(db_session, active_user.id)
    clock.advance(days=30, seconds=1)

    with pytest.raises(SessionExpiredError):
        service.refresh_access_token(db_session, tokens.refresh_token)

    session = db_session.query(UserSession).filter_by(refresh_token=tokens.refresh_token).one()
    assert session.is_active is False
    with pytest.raises(SessionInvalidError):
        service.refresh_access_token(db_session, tokens.refresh_token)


def test_validate_access_token_expiry(db_session, active_user, service, clock) -> None:
    tokens = service.create_session(db_session, active_user.id)
    clock.advance(minutes=15)
    assert service.validate_access_token(db_session, tokens.access_token).is_active is True

    clock.advance(seconds=1)
    with pytest.raises(SessionExpiredError):
        service.validate_access_token(db_session, tokens.access_token)


def test_validate_access_token_rejects_garbage(db_session, service) -> None:
    with pytest.raises(InvalidTokenError):
        service.validate_access_token(db_session, "not-a-jwt")


def test_invalidate_session_is_idempotent(db_session, active_user, service) -> None:
    tokens = service.create_session(db_session, active_user.id)

    service.invalidate_session(db_session, tokens.access_token)
    service.invalidate_session(db_session, tokens.access_token)
    service.invalidate_session(db_session, "unknown-token")

    with pytest.raises(SessionInvalidError):
        service.validate_access_token(db_session, tokens.access_token)


def test_invalidate_all_user_sessions(db_session, active_user, make_user, service) -> None:
    other = make_user("other@example.com")
    first = service.create_session(db_session, active_user.id)
    service.create_session(db_session, active_user.id)
    survivor = service.create_session(db_session, other.id)

    assert service.invalidate_all_user_sessions(db_session, active_user.id) == 2
    assert service.invalidate_all_user_sessions(db_session, active_user.id) == 0

    db_session.expire_all()
    with pytest.raises(SessionInvalidError):
        service.validate_access_token(db_session, first.access_token)
    assert service.validate_access_token(db_session, survivor.access_token).user_id == other.id


def test_get_user_active_sessions(db_session, active_user, service, clock) -> None:
    stale = service.create_session(db_session, active_user.id)
    clock.advance(days=29)
    current = service.create_session(db_session, active_user.id)
    revoked = service.create_session(db_session, active_user.id)
    service.invalidate_session(db_session, revoked.access_token)
    clock.advance(days=2)

    active = service.get_user_active_sessions(db_session, active_user.id)

    assert [session.access_token for session in active] == [current.access_token]
    assert stale.access_token not in {session.access_token for session in active}


def test_cleanup_expired_sessions(db_session, active_user, service, clock) -> None:
    service.create_session(db_session, active_user.id)
    clock.advance(days=31)
    fresh = service.create_session(db_session, active_user.id)

    assert service.cleanup_expired(db_session) == 1
    assert service.validate_access_token(db_session, fresh.access_token).is_active is True
