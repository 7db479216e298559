"""X (Twitter) OAuth 2.0 sign-in provider."""

from __future__ import annotations

import logging

import httpx

from controlplane.integrations.oauth.base import OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.exceptions import OAuth2ProfileError, OAuth2TokenExchangeError
from controlplane.models.oauth_provider import OAuthProviderType

logger = logging.getLogger(__name__)


class XOAuth2Provider(OAuth2Provider):
    """X sign-in. PKCE is mandatory and the client authenticates with HTTP Basic."""

    USER_INFO_URL = "https://api.twitter.com/2/users/me"
    FALLBACK_EMAIL_DOMAIN = "twitter.com"

    @property
    def provider_type(self) -> OAuthProviderType:
        return OAuthProviderType.X

    def get_authorization_url(self, state: str, code_challenge: str | None = None) -> str:
        if not code_challenge:
            logger.warning("X OAuth 2.0 requires PKCE but no code challenge was provided")
        return super().get_authorization_url(state, code_challenge)

    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
        data = {
            "code": code,
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        else:
            logger.warning("X OAuth 2.0 requires PKCE but no code verifier was provided")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.config.token_url,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    auth=(self.config.client_id, self.config.client_secret),
                    data=data,
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise OAuth2TokenExchangeError(f"Failed to exchange code: {type(e).__name__}") from e

        if "error" in payload or "access_token" not in payload:
            raise OAuth2TokenExchangeError(f"X OAuth error: {payload.get('error', 'missing access token')}")
        return self._token_set(payload)

    async def get_user_profile(self, access_token: str) -> OAuthUserProfile:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    self.USER_INFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                    params={"user.fields": "profile_image_url,name,username"},
                )
                response.raise_for_status()
                data = response.json().get("data") or {}
            except httpx.HTTPError as e:
                raise OAuth2ProfileError(f"Failed to get user info: {type(e).__name__}") from e

        if "id" not in data or "username" not in data:
            raise OAuth2ProfileError("X profile response was incomplete")

        # Email needs elevated API access; fall back to a synthetic address.
        email = data.get("email") or f"{data['username']}@{self.FALLBACK_EMAIL_DOMAIN}"
        name = data.get("name") or ""
        first_name, _, last_name = name.partition(" ")
        return OAuthUserProfile(
            provider=OAuthProviderType.X,
            provider_id=str(data["id"]),
            email=email,
            display_name=name or None,
            first_name=first_name or None,
            last_name=last_name or None,
            picture_url=data.get("profile_image_url"),
        )


__all__ = ["XOAuth2Provider"]
