"""Sign in with Apple provider."""

from __future__ import annotations

import time
from typing import Dict

import httpx
from jose import JWTError, jwt

from controlplane.integrations.oauth.base import OAuth2Provider, OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.exceptions import OAuth2ProfileError, OAuth2TokenExchangeError
from controlplane.models.oauth_provider import OAuthProviderType

APPLE_AUDIENCE = "https://appleid.apple.com"
# Apple caps client secret lifetime at six months.
CLIENT_SECRET_LIFETIME_SECONDS = 15777000


class AppleOAuth2Provider(OAuth2Provider):
    """Sign in with Apple.

    The client secret is an ES256 JWT minted per request from the team's
    private key, and there is no profile endpoint: identity comes from the
    ``id_token`` returned by the token exchange.
    """

    @property
    def provider_type(self) -> OAuthProviderType:
        return OAuthProviderType.APPLE

    def authorization_params(self, state: str) -> Dict[str, str]:
        params = super().authorization_params(state)
        params["response_mode"] = "form_post"
        return params

    def generate_client_secret(self, now: int | None = None) -> str:
        issued_at = int(time.time()) if now is None else now
        claims = {
            "iss": self.config.extra["team_id"],
            "iat": issued_at,
            "exp": issued_at + CLIENT_SECRET_LIFETIME_SECONDS,
            "aud": APPLE_AUDIENCE,
            "sub": self.config.client_id,
        }
        private_key = self.config.extra["private_key"].replace("\\n", "\n")
        return jwt.encode(
            claims,
            private_key,
            algorithm="ES256",
            headers={"kid": self.config.extra["key_id"]},
        )

    async def exchange_code_for_tokens(self, code: str, code_verifier: str | None = None) -> OAuth2TokenSet:
        try:
            client_secret = self.generate_client_secret()
        except (JWTError, KeyError, ValueError) as e:
            raise OAuth2TokenExchangeError("Failed to sign Apple client secret") from e

        data = {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": client_secret,
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
            raise OAuth2TokenExchangeError(f"Apple OAuth error: {payload.get('error', 'missing access token')}")
        return self._token_set(payload)

    async def get_user_profile(self, access_token: str) -> OAuthUserProfile:
        """Decode an Apple ID token into a profile.

        Apple only shares the user's name on the first authorization, so the
        email doubles as display name.
        """
        try:
            claims = jwt.get_unverified_claims(access_token)
        except JWTError as e:
            raise OAuth2ProfileError("Failed to decode Apple ID token") from e

        if not claims.get("sub") or not claims.get("email"):
            raise OAuth2ProfileError("Apple ID token is missing subject or email")

        return OAuthUserProfile(
            provider=OAuthProviderType.APPLE,
            provider_id=str(claims["sub"]),
            email=claims["email"],
            display_name=claims["email"],
        )

    async def fetch_profile(self, tokens: OAuth2TokenSet) -> OAuthUserProfile:
        if not tokens.id_token:
            raise OAuth2ProfileError("Apple token response did not include an ID token")
        return await self.get_user_profile(tokens.id_token)


__all__ = ["AppleOAuth2Provider", "APPLE_AUDIENCE", "CLIENT_SECRET_LIFETIME_SECONDS"]
