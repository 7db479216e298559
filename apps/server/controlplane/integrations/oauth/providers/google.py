"""Google OAuth2 sign-in provider."""

from __future__ import annotations

from typing import Dict

import httpx

from controlplane.integrations.oauth.base import OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.exceptions import OAuth2ProfileError, OAuth2TokenExchangeError
from controlplane.models.oauth_provider import OAuthProviderType


class GoogleOAuth2Provider(OAuth2Provider):
    """Google OpenID Connect sign-in."""

    USER_INFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    @property
    def provider_type(self) -> OAuthProviderType:
        return OAuthProviderType.GOOGLE

    def authorization_params(self, state: str) -> Dict[str, str]:
        params = super().authorization_params(state)
        params["access_type"] = "offline"  # Required to receive refresh token
        params["prompt"] = "consent"
        return params

    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
        """Exchange authorization code for Google access and refresh tokens."""
        data = {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_uri,
            "grant_type": "authorization_code",
        }
        if code_verifier:
            data["code_verifier"] = code_verifier

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.config.token_url,
                    headers={"Accept": "application/json"},
                    data=data,
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise OAuth2TokenExchangeError(f"Failed to exchange code: {type(e).__name__}") from e

        if "error" in payload or "access_token" not in payload:
            raise OAuth2TokenExchangeError(f"Google OAuth error: {payload.get('error', 'missing access token')}")
        return self._token_set(payload)

    async def get_user_profile(self, access_token: str) -> OAuthUserProfile:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    self.USER_INFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as e:
                raise OAuth2ProfileError(f"Failed to get user info: {type(e).__name__}") from e

        return OAuthUserProfile(
            provider=OAuthProviderType.GOOGLE,
            provider_id=str(data["id"]),
            email=data["email"],
            display_name=data.get("name"),
            first_name=data.get("given_name"),
            last_name=data.get("family_name"),
            picture_url=data.get("picture"),
        )


__all__ = ["GoogleOAuth2Provider"]
