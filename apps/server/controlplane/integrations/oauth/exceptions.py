"""OAuth2-specific exceptions."""

from controlplane.core.exceptions import BadRequestError, ControlPlaneError, UpstreamError


class OAuth2Error(ControlPlaneError):
    """Base OAuth2 error."""


class UnsupportedProviderError(OAuth2Error, BadRequestError):
    """Raised when provider is not supported or not configured."""

    reason = "oauth_provider_unsupported"
    default_message = "OAuth provider is not available."


class OAuth2TokenExchangeError(OAuth2Error, UpstreamError):
    """Raised when token exchange fails."""

    reason = "oauth_token_exchange_failed"
    default_message = "Failed to exchange authorization code."


class OAuth2ProfileError(OAuth2Error, UpstreamError):
    """Raised when the provider profile cannot be retrieved."""

    reason = "oauth_profile_failed"
    default_message = "Failed to get user profile."


__all__ = [
    "OAuth2Error",
    "OAuth2ProfileError",
    "OAuth2TokenExchangeError",
    "UnsupportedProviderError",
]
