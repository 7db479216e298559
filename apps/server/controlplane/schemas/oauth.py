"""OAuth sign-in schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from controlplane.models.user import OnboardingStep


class OAuthInitiation(BaseModel):
    url: str
    state: str

    model_config = ConfigDict(frozen=True)


class OAuthUserSummary(BaseModel):
    id: uuid.UUID
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    onboarding_step: OnboardingStep
    email_verified: bool

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OAuthResult(BaseModel):
    """Outcome of a completed OAuth callback."""

    onboarding_token: str
    user: OAuthUserSummary
    is_new_user: bool
    requires_password_setup: bool

    model_config = ConfigDict(frozen=True)


__all__ = ["OAuthInitiation", "OAuthResult", "OAuthUserSummary"]
