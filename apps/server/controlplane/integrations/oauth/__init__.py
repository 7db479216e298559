"""OAuth2 sign-in integration package."""

from .base import OAuth2Config, OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from .exceptions import (
    OAuth2Error,
    OAuth2ProfileError,
    OAuth2TokenExchangeError,
    UnsupportedProviderError,
)
from .factory import OAuth2ProviderFactory

__all__ = [
    "OAuth2Config",
    "OAuth2Error",
    "OAuth2ProfileError",
    "OAuth2Provider",
    "OAuth2ProviderFactory",
    "OAuth2TokenExchangeError",
    "OAuth2TokenSet",
    "OAuthUserProfile",
    "UnsupportedProviderError",
]
