"""Service layer for onboarding, identity verification, sessions and tenants."""

from .auth import AccountNotActiveError, AuthService, OnboardingIncompleteError
from .email import EmailDeliveryError, build_verification_email, send_verification_email
from .email_verification import (
    EmailAlreadyVerifiedError,
    EmailVerificationError,
    EmailVerificationService,
    InvalidOtpError,
    OtpAlreadyVerifiedError,
    OtpAttemptsExceededError,
    OtpExpiredError,
    VerificationNotFoundError,
)
from .maintenance import start_cleanup_scheduler, stop_cleanup_scheduler, sweep_expired_records
from .mobile_verification import (
    MobileVerificationNotFoundError,
    MobileVerificationService,
    PhoneAlreadyVerifiedError,
)
from .oauth import OAuthAccountLinkedElsewhereError, OAuthEmailConflictError, OAuthService, ProviderMismatchError
from .oauth_state import (
    OAuthStateData,
    OAuthStateExpiredError,
    OAuthStateInvalidError,
    OAuthStateService,
)
from .onboarding import (
    InvalidOnboardingStepError,
    OnboardingService,
    PasswordAlreadySetError,
    UserAlreadyRegisteredError,
)
from .sessions import SessionExpiredError, SessionInvalidError, SessionService
from .tenants import (
    TenantNotFoundError,
    TenantService,
    TenantSubdomainConflictError,
    TenantValidationError,
)
from .whatsapp import WhatsAppClient, WhatsAppDeliveryError
from .whatsapp_webhook import (
    WebhookPayloadError,
    WebhookSignatureError,
    WebhookVerificationError,
    WhatsAppWebhookHandler,
)

__all__ = [
    "AccountNotActiveError",
    "AuthService",
    "EmailAlreadyVerifiedError",
    "EmailDeliveryError",
    "EmailVerificationError",
    "EmailVerificationService",
    "InvalidOnboardingStepError",
    "InvalidOtpError",
    "MobileVerificationNotFoundError",
    "MobileVerificationService",
    "OAuthAccountLinkedElsewhereError",
    "OAuthEmailConflictError",
    "OAuthService",
    "OAuthStateData",
    "OAuthStateExpiredError",
    "OAuthStateInvalidError",
    "OAuthStateService",
    "OnboardingIncompleteError",
    "OnboardingService",
    "OtpAlreadyVerifiedError",
    "OtpAttemptsExceededError",
    "OtpExpiredError",
    "PasswordAlreadySetError",
    "PhoneAlreadyVerifiedError",
    "ProviderMismatchError",
    "SessionExpiredError",
    "SessionInvalidError",
    "SessionService",
    "TenantNotFoundError",
    "TenantService",
    "TenantSubdomainConflictError",
    "TenantValidationError",
    "UserAlreadyRegisteredError",
    "VerificationNotFoundError",
    "WebhookPayloadError",
    "WebhookSignatureError",
    "WebhookVerificationError",
    "WhatsAppClient",
    "WhatsAppDeliveryError",
    "WhatsAppWebhookHandler",
    "build_verification_email",
    "send_verification_email",
    "start_cleanup_scheduler",
    "stop_cleanup_scheduler",
    "sweep_expired_records",
]
