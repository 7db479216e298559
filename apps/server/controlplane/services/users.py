"""Repository helpers for interacting with user records."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from controlplane.core.exceptions import UserNotFoundError
from controlplane.models.session import UserSession
from controlplane.models.user import AccountStatus, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(db: Session, user_id: uuid.UUID) -> User:
    """Fetch a user by primary key or raise :class:`UserNotFoundError`."""

    user = db.get(User, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Fetch a user by email address."""

    statement = select(User).where(User.email == normalize_email(email))
    result = db.execute(statement)
    return result.scalar_one_or_none()


def is_phone_verified_by_other_user(db: Session, phone: str, user_id: uuid.UUID) -> bool:
    statement = select(User.id).where(
        User.phone == phone,
        User.phone_verified.is_(True),
        User.id != user_id,
    )
    return db.execute(statement).first() is not None


def complete_onboarding_if_ready(user: User) -> bool:
    """Advance the user to COMPLETE once email, phone and password are all in place."""

    if not user.ready_to_complete:
        return False
    user.mark_onboarding_complete()
    return True


def record_login(db: Session, user: User, when: datetime) -> None:
    user.last_login_at = when
    db.flush()


def deactivate_user(db: Session, user: User) -> int:
    """Soft-deactivate a user and revoke every active session.

    Returns the number of sessions revoked.
    """

    user.account_status = AccountStatus.DEACTIVATED
    result = db.execute(
        update(UserSession)
        .where(UserSession.user_id == user.id, UserSession.is_active.is_(True))
        .values(is_active=False)
    )
    db.commit()
    return result.rowcount or 0


__all__ = [
    "complete_onboarding_if_ready",
    "deactivate_user",
    "get_user",
    "get_user_by_email",
    "is_phone_verified_by_other_user",
    "normalize_email",
    "record_login",
]
