"""Factory for creating OAuth2 sign-in providers."""

from __future__ import annotations

from typing import Dict, Type

from controlplane.core.config import Settings, settings as default_settings
from controlplane.integrations.oauth.base import OAuth2Config, OAuth2Provider
from controlplane.integrations.oauth.exceptions import UnsupportedProviderError
from controlplane.integrations.oauth.providers.apple import AppleOAuth2Provider
from controlplane.integrations.oauth.providers.facebook import FacebookOAuth2Provider
from controlplane.integrations.oauth.providers.google import GoogleOAuth2Provider
from controlplane.integrations.oauth.providers.microsoft import MicrosoftOAuth2Provider
from controlplane.integrations.oauth.providers.x import XOAuth2Provider
from controlplane.models.oauth_provider import OAuthProviderType


class OAuth2ProviderFactory:
    """Builds the adapter for a provider; the set of providers is closed over the enum."""

    _providers: Dict[OAuthProviderType, Type[OAuth2Provider]] = {
        OAuthProviderType.GOOGLE: GoogleOAuth2Provider,
        OAuthProviderType.MICROSOFT: MicrosoftOAuth2Provider,
        OAuthProviderType.APPLE: AppleOAuth2Provider,
        OAuthProviderType.FACEBOOK: FacebookOAuth2Provider,
        OAuthProviderType.X: XOAuth2Provider,
    }

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings if settings is not None else default_settings

    def create_provider(self, provider: OAuthProviderType) -> OAuth2Provider:
        """Create OAuth2 provider instance."""
        provider_class = self._providers.get(provider)
        if provider_class is None:
            raise UnsupportedProviderError(f"Provider '{provider}' is not supported")

        if not self.is_provider_configured(provider):
            raise UnsupportedProviderError(
                f"Provider '{provider.value}' is not configured. "
                f"Please set the required environment variables."
            )

        return provider_class(self._get_provider_config(provider))

    def _redirect_uri(self, provider: OAuthProviderType) -> str:
        base = self._settings.oauth_redirect_base_url.rstrip("/")
        return f"{base}/{provider.value.lower()}/callback"

    def _get_provider_config(self, provider: OAuthProviderType) -> OAuth2Config:
        """Get configuration for specific provider."""
        s = self._settings
        redirect_uri = self._redirect_uri(provider)

        if provider is OAuthProviderType.GOOGLE:
            return OAuth2Config(
                client_id=s.google_client_id,
                client_secret=s.google_client_secret,
                authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
                token_url="https://oauth2.googleapis.com/token",
                scopes=["openid", "email", "profile"],
                redirect_uri=redirect_uri,
            )
        if provider is OAuthProviderType.MICROSOFT:
            return OAuth2Config(
                client_id=s.microsoft_client_id,
                client_secret=s.microsoft_client_secret,
                authorization_url="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
                token_url="https://login.microsoftonline.com/common/oauth2/v2.0/token",
                scopes=["openid", "email", "profile", "User.Read"],
                redirect_uri=redirect_uri,
            )
        if provider is OAuthProviderType.APPLE:
            return OAuth2Config(
                client_id=s.apple_client_id,
                client_secret="",
                authorization_url="https://appleid.apple.com/auth/authorize",
                token_url="https://appleid.apple.com/auth/token",
                scopes=["name", "email"],
                redirect_uri=redirect_uri,
                extra={
                    "team_id": s.apple_team_id,
                    "key_id": s.apple_key_id,
                    "private_key": s.apple_private_key,
                },
            )
        if provider is OAuthProviderType.FACEBOOK:
            return OAuth2Config(
                client_id=s.facebook_client_id,
                client_secret=s.facebook_client_secret,
                authorization_url="https://www.facebook.com/v18.0/dialog/oauth",
                token_url="https://graph.facebook.com/v18.0/oauth/access_token",
                scopes=["email", "public_profile"],
                redirect_uri=redirect_uri,
            )
        if provider is OAuthProviderType.X:
            return OAuth2Config(
                client_id=s.x_client_id,
                client_secret=s.x_client_secret,
                authorization_url="https://twitter.com/i/oauth2/authorize",
                token_url="https://api.twitter.com/2/oauth2/token",
                scopes=["tweet.read", "users.read", "offline.access"],
                redirect_uri=redirect_uri,
            )

        raise UnsupportedProviderError(f"No configuration for provider: {provider}")

    def is_provider_configured(self, provider: OAuthProviderType) -> bool:
        """Check if provider has required credentials configured."""
        s = self._settings
        if provider is OAuthProviderType.GOOGLE:
            return bool(s.google_client_id and s.google_client_secret)
        if provider is OAuthProviderType.MICROSOFT:
            return bool(s.microsoft_client_id and s.microsoft_client_secret)
        if provider is OAuthProviderType.APPLE:
            return bool(s.apple_client_id and s.apple_team_id and s.apple_key_id and s.apple_private_key)
        if provider is OAuthProviderType.FACEBOOK:
            return bool(s.facebook_client_id and s.facebook_client_secret)
        if provider is OAuthProviderType.X:
            return bool(s.x_client_id and s.x_client_secret)
        return False

    def get_supported_providers(self) -> list[OAuthProviderType]:
        """Get providers that are properly configured."""
        return [provider for provider in self._providers if self.is_provider_configured(provider)]


__all__ = ["OAuth2ProviderFactory"]
