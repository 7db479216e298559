"""Abstract base classes for OAuth2 sign-in providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from controlplane.core.security import PKCE_METHOD
from controlplane.models.oauth_provider import OAuthProviderType


@dataclass
class OAuth2Config:
    """OAuth2 configuration for a provider."""

    client_id: str
    client_secret: str
    authorization_url: str
    token_url: str
    scopes: List[str]
    redirect_uri: str
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class OAuth2TokenSet:
    """OAuth2 token response."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: str = "Bearer"
    id_token: Optional[str] = None


@dataclass
class OAuthUserProfile:
    """Provider profile normalised to the fields onboarding needs."""

    provider: OAuthProviderType
    provider_id: str
    email: str
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    picture_url: Optional[str] = None


class OAuth2Provider(ABC):
    """Abstract base class for OAuth2 sign-in providers."""

    scope_separator = " "

    def __init__(self, config: OAuth2Config):
        self.config = config

    @property
    @abstractmethod
    def provider_type(self) -> OAuthProviderType:
        """Provider this adapter serves."""

    def authorization_params(self, state: str) -> Dict[str, str]:
        """Provider-specific query parameters; PKCE parameters are appended separately."""

        return {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.scope_separator.join(self.config.scopes),
            "state": state,
        }

    def get_authorization_url(self, state: str, code_challenge: str | None = None) -> str:
        """Generate the authorization URL, embedding the PKCE challenge when given."""

        params = self.authorization_params(state)
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = PKCE_METHOD
        return f"{self.config.authorization_url}?{urlencode(params)}"

    @abstractmethod
    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
        """Exchange authorization code for tokens."""

    @abstractmethod
    async def get_user_profile(self, access_token: str) -> OAuthUserProfile:
        """Get the normalised user profile from the provider."""

    async def fetch_profile(self, tokens: OAuth2TokenSet) -> OAuthUserProfile:
        """Resolve the profile for a completed token exchange."""

        return await self.get_user_profile(tokens.access_token)

    @staticmethod
    def _token_set(data: Dict[str, Any]) -> OAuth2TokenSet:
        return OAuth2TokenSet(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            scope=data.get("scope"),
            token_type=data.get("token_type", "Bearer"),
            id_token=data.get("id_token"),
        )


__all__ = ["OAuth2Config", "OAuth2Provider", "OAuth2TokenSet", "OAuthUserProfile"]
