"""Authentication-related Pydantic schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator

from controlplane.models.user import AccountStatus, OnboardingStep


class LoginRequest(BaseModel):
    """Schema for logging in with email and password."""

    email: EmailStr
    password: str

    model_config = ConfigDict(frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class RefreshRequest(BaseModel):
    refresh_token: str

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class UserRead(BaseModel):
    """Schema representing the public view of a user."""

    id: uuid.UUID
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_verified: bool
    phone: Optional[str] = None
    phone_verified: bool
    onboarding_step: OnboardingStep
    onboarding_complete: bool
    account_status: AccountStatus
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class SessionTokens(BaseModel):
    """Access/refresh pair handed out for a session."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int

    model_config = ConfigDict(frozen=True)


class AuthResult(SessionTokens):
    user: UserRead


class SessionRead(BaseModel):
    id: uuid.UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


__all__ = [
    "AuthResult",
    "LoginRequest",
    "RefreshRequest",
    "SessionRead",
    "SessionTokens",
    "UserRead",
]
