"""Onboarding request and status schemas."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from controlplane.models.mobile_verification import MobileVerificationMethod
from controlplane.models.user import AccountStatus, OnboardingStep, User

_REGISTER_PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9])")
_SET_PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

_Name = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


class RegisterRequest(BaseModel):
    """Schema for starting (or resuming) email/password onboarding."""

    email: EmailStr
    password: str = Field(min_length=8)
    first_name: Optional[_Name] = None
    last_name: Optional[_Name] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_complexity(cls, value: str) -> str:
        if not _REGISTER_PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must contain at least one lowercase letter, uppercase letter, number, and special character"
            )
        return value


class SetPasswordRequest(BaseModel):
    password: str = Field(min_length=8)

    model_config = ConfigDict(frozen=True)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, value: str) -> str:
        if not _SET_PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must contain at least one lowercase letter, one uppercase letter, and one number"
            )
        return value


class VerifyEmailRequest(BaseModel):
    otp: str = Field(pattern=r"^\d{6}$")

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class InitiateMobileVerificationRequest(BaseModel):
    method: MobileVerificationMethod = MobileVerificationMethod.WHATSAPP_QR

    model_config = ConfigDict(frozen=True)


class OnboardingStatus(BaseModel):
    """Projection of a user's onboarding progress."""

    user_id: uuid.UUID
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    current_step: OnboardingStep
    onboarding_complete: bool
    account_status: AccountStatus
    email_verified: bool
    phone_verified: bool
    onboarding_token: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_user(cls, user: User, onboarding_token: str | None = None) -> "OnboardingStatus":
        return cls(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            current_step=user.onboarding_step,
            onboarding_complete=user.onboarding_complete,
            account_status=user.account_status,
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            onboarding_token=onboarding_token,
        )


class MobileVerificationStatus(BaseModel):
    """What the client shows while waiting for the user to relay the token."""

    verification_id: uuid.UUID
    method: MobileVerificationMethod
    verification_token: str
    is_verified: bool
    phone: Optional[str] = None
    expires_at: datetime
    message: str
    instructions: Optional[str] = None

    model_config = ConfigDict(frozen=True)


__all__ = [
    "InitiateMobileVerificationRequest",
    "MobileVerificationStatus",
    "OnboardingStatus",
    "RegisterRequest",
    "SetPasswordRequest",
    "VerifyEmailRequest",
]
