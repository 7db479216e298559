"""ORM model exports."""

from .email_verification import EmailVerification
from .mobile_verification import MobileVerification, MobileVerificationMethod
from .oauth_provider import OAuthProviderLink, OAuthProviderType
from .oauth_state import OAuthState
from .session import UserSession
from .tenant import DatabaseType, Tenant, TenantDatabaseConfig, TenantStatus
from .user import AccountStatus, OnboardingStep, User

__all__ = [
    "AccountStatus",
    "DatabaseType",
    "EmailVerification",
    "MobileVerification",
    "MobileVerificationMethod",
    "OAuthProviderLink",
    "OAuthProviderType",
    "OAuthState",
    "OnboardingStep",
    "Tenant",
    "TenantDatabaseConfig",
    "TenantStatus",
    "User",
    "UserSession",
]
