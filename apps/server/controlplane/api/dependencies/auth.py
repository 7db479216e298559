"""Authentication dependencies for API routes."""

from __future__ import annotations

from typing import Annotated, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from controlplane.api.errors import to_http_exception
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.exceptions import ControlPlaneError, UserNotFoundError
from controlplane.core.security import TokenType, decode_token
from controlplane.db.session import get_db
from controlplane.models.user import AccountStatus, User
from controlplane.services.sessions import SessionService
from controlplane.services.users import get_user

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_settings() -> Settings:
    return default_settings


def get_session_service(settings: Annotated[Settings, Depends(get_settings)]) -> SessionService:
    return SessionService(settings=settings)


def _credentials_exception() -> HTTPException:
    """Return a standardised HTTP 401 exception for auth failures."""

    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials.",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
    sessions: Annotated[SessionService, Depends(get_session_service)],
) -> User:
    """Resolve the bearer access token to its user through the session store."""

    try:
        session = sessions.validate_access_token(db, token)
        return get_user(db, session.user_id)
    except UserNotFoundError as exc:
        raise _credentials_exception() from exc
    except ControlPlaneError as exc:
        raise to_http_exception(exc) from exc


def require_active_session(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Validate a bearer access token and require an ACTIVE account."""

    if current_user.account_status is not AccountStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active.",
        )
    return current_user


def require_onboarding_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Accept only onboarding-scoped tokens; access and refresh tokens are rejected."""

    try:
        claims = decode_token(token, TokenType.ONBOARDING, settings=settings)
        return get_user(db, claims.user_id)
    except UserNotFoundError as exc:
        raise _credentials_exception() from exc
    except ControlPlaneError as exc:
        raise to_http_exception(exc) from exc


def require_account_status(*allowed: AccountStatus) -> Callable[..., User]:
    """Build a dependency admitting only users whose status is in ``allowed``."""

    def dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if current_user.account_status not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account status does not permit this action.",
            )
        return current_user

    return dependency


__all__ = [
    "get_current_user",
    "get_session_service",
    "get_settings",
    "oauth2_scheme",
    "require_account_status",
    "require_active_session",
    "require_onboarding_user",
]
