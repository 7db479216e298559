"""API dependency exports."""

from controlplane.db.session import get_db

from .auth import (
    get_current_user,
    require_account_status,
    require_active_session,
    require_onboarding_user,
)

__all__ = [
    "get_current_user",
    "get_db",
    "require_account_status",
    "require_active_session",
    "require_onboarding_user",
]
