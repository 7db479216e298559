"""Facebook Login OAuth2 provider."""

from __future__ import annotations

import httpx

from controlplane.integrations.oauth.base import OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.exceptions import OAuth2ProfileError, OAuth2TokenExchangeError
from controlplane.models.oauth_provider import OAuthProviderType


class FacebookOAuth2Provider(OAuth2Provider):
    """Facebook Login; the token endpoint is called with GET query parameters."""

    USER_INFO_URL = "https://graph.facebook.com/v18.0/me"
    PROFILE_FIELDS = "id,email,first_name,last_name,name,picture"

    @property
    def provider_type(self) -> OAuthProviderType:
        return OAuthProviderType.FACEBOOK

    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
        params = {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_uri,
        }
        if code_verifier:
            params["code_verifier"] = code_verifier

        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(self.config.token_url, params=params)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise OAuth2TokenExchangeError(f"Failed to exchange code: {type(e).__name__}") from e

        if "error" in payload or "access_token" not in payload:
            raise OAuth2TokenExchangeError("Facebook OAuth error")
        payload.setdefault("token_type", "bearer")
        return self._token_set(payload)

    async def get_user_profile(self, access_token: str) -> OAuthUserProfile:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    self.USER_INFO_URL,
                    params={"fields": self.PROFILE_FIELDS, "access_token": access_token},
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPError as e:
                raise OAuth2ProfileError(f"Failed to get user info: {type(e).__name__}") from e

        if not data.get("email"):
            raise OAuth2ProfileError("Facebook profile did not include an email address")

        picture = (data.get("picture") or {}).get("data") or {}
        return OAuthUserProfile(
            provider=OAuthProviderType.FACEBOOK,
            provider_id=str(data["id"]),
            email=data["email"],
            display_name=data.get("name"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            picture_url=picture.get("url"),
        )


__all__ = ["FacebookOAuth2Provider"]
