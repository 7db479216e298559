"""Pydantic schema exports."""

from .auth import AuthResult, LoginRequest, RefreshRequest, SessionRead, SessionTokens, UserRead
from .oauth import OAuthInitiation, OAuthResult, OAuthUserSummary
from .onboarding import (
    InitiateMobileVerificationRequest,
    MobileVerificationStatus,
    OnboardingStatus,
    RegisterRequest,
    SetPasswordRequest,
    VerifyEmailRequest,
)
from .tenant import TenantCreate, TenantDatabaseConfigRead, TenantRead, TenantUpdate
from .whatsapp import WhatsAppWebhookPayload

__all__ = [
    "AuthResult",
    "InitiateMobileVerificationRequest",
    "LoginRequest",
    "MobileVerificationStatus",
    "OAuthInitiation",
    "OAuthResult",
    "OAuthUserSummary",
    "OnboardingStatus",
    "RefreshRequest",
    "RegisterRequest",
    "SessionRead",
    "SessionTokens",
    "SetPasswordRequest",
    "TenantCreate",
    "TenantDatabaseConfigRead",
    "TenantRead",
    "TenantUpdate",
    "UserRead",
    "VerifyEmailRequest",
    "WhatsAppWebhookPayload",
]
