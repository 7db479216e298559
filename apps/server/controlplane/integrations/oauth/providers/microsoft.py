"""Microsoft identity platform OAuth2 sign-in provider."""

from __future__ import annotations

from typing import Dict

import httpx

from controlplane.integrations.oauth.base import OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.exceptions import OAuth2ProfileError, OAuth2TokenExchangeError
from controlplane.models.oauth_provider import OAuthProviderType


class MicrosoftOAuth2Provider(OAuth2Provider):
    """Microsoft (personal and work accounts) sign-in via Microsoft Graph."""

    USER_INFO_URL = "https://graph.microsoft.com/v1.0/me"

    @property
    def provider_type(self) -> OAuthProviderType:
        return OAuthProviderType.MICROSOFT

    def authorization_params(self, state: str) -> Dict[str, str]:
        params = super().authorization_params(state)
        params["response_mode"] = "query"
        return params

    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
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
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    data=data,
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise OAuth2TokenExchangeError(f"Failed to exchange code: {type(e).__name__}") from e

        if "error" in payload or "access_token" not in payload:
            raise OAuth2TokenExchangeError(f"Microsoft OAuth error: {payload.get('error', 'missing access token')}")
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

        email = data.get("userPrincipalName") or data.get("mail")
        if not email:
            raise OAuth2ProfileError("Microsoft profile did not include an email address")

        # Graph serves the photo from a separate endpoint; not fetched here.
        return OAuthUserProfile(
            provider=OAuthProviderType.MICROSOFT,
            provider_id=str(data["id"]),
            email=email,
            display_name=data.get("displayName"),
            first_name=data.get("givenName"),
            last_name=data.get("surname"),
        )


__all__ = ["MicrosoftOAuth2Provider"]
