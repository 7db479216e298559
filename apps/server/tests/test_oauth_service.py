"""Tests for the OAuth sign-in, sign-up and linking flow."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select

from controlplane.core.clock import as_utc
from controlplane.core.encryption import decrypt_secret
from controlplane.core.security import TokenType, decode_token, generate_code_challenge
from controlplane.integrations.oauth.base import OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.factory import OAuth2ProviderFactory
from controlplane.models.oauth_provider import OAuthProviderLink, OAuthProviderType
from controlplane.models.oauth_state import OAuthState
from controlplane.models.user import AccountStatus, OnboardingStep, User
from controlplane.services.oauth import (
    OAuthAccountLinkedElsewhereError,
    OAuthEmailConflictError,
    OAuthService,
    ProviderMismatchError,
)
from controlplane.services.oauth_state import OAuthStateInvalidError, OAuthStateService


class StubProviderFactory(OAuth2ProviderFactory):
    """Real adapters with the network calls replaced by canned responses."""

    def __init__(self, settings, profile: OAuthUserProfile, tokens: OAuth2TokenSet) -> None:
        super().__init__(settings)
        self.profile = profile
        self.tokens = tokens
        self.exchanges: list[tuple[str, str | None]] = []

    def create_provider(self, provider):
        adapter = super().create_provider(provider)

        async def _exchange(code, code_verifier=None):
            self.exchanges.append((code, code_verifier))
            return self.tokens

        adapter.exchange_code_for_tokens = _exchange
        adapter.fetch_profile = AsyncMock(return_value=self.profile)
        return adapter


def _profile(provider=OAuthProviderType.GOOGLE, provider_id="g-123", email="oauth@example.com") -> OAuthUserProfile:
    return OAuthUserProfile(
        provider=provider,
        provider_id=provider_id,
        email=email,
        display_name="Pat Doe",
        first_name="Pat",
        last_name="Doe",
        picture_url="https://example.com/pat.png",
    )


@pytest.fixture()
def tokens() -> OAuth2TokenSet:
    return OAuth2TokenSet(access_token="provider-access", refresh_token="provider-refresh", expires_in=3600)


@pytest.fixture()
def factory(test_settings, tokens) -> StubProviderFactory:
    return StubProviderFactory(test_settings, _profile(), tokens)


@pytest.fixture()
def service(test_settings, clock, factory) -> OAuthService:
    return OAuthService(
        settings=test_settings,
        state_service=OAuthStateService(settings=test_settings, clock=clock),
        provider_factory=factory,
        clock=clock,
    )


def test_initiate_oauth_binds_state_and_pkce(db_session, service) -> None:
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)

    params = parse_qs(urlparse(initiation.url).query)
    assert params["state"] == [initiation.state]
    stored = db_session.execute(select(OAuthState)).scalar_one()
    assert stored.state_token == initiation.state
    assert stored.user_id is None
    assert params["code_challenge"] == [generate_code_challenge(stored.code_verifier)]
    assert params["code_challenge_method"] == ["S256"]


@pytest.mark.asyncio
async def test_callback_creates_new_user(db_session, service, factory, test_settings, clock) -> None:
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)
    verifier = db_session.execute(select(OAuthState.code_verifier)).scalar_one()

    result = await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "auth-code", initiation.state)

    assert result.is_new_user is True
    assert result.requires_password_setup is True
    assert result.user.email == "oauth@example.com"
    assert result.user.onboarding_step is OnboardingStep.SET_PASSWORD
    assert result.user.email_verified is True
    assert decode_token(result.onboarding_token, TokenType.ONBOARDING, settings=test_settings).user_id == result.user.id
    assert factory.exchanges == [("auth-code", verifier)]

    user = db_session.get(User, result.user.id)
    assert user.password_hash is None
    assert user.account_status is AccountStatus.PENDING_MOBILE

    link = db_session.execute(select(OAuthProviderLink)).scalar_one()
    assert link.user_id == user.id
    assert link.provider_id == "g-123"
    assert link.display_name == "Pat Doe"
    assert link.encrypted_access_token != "provider-access"
    assert decrypt_secret(link.encrypted_access_token, settings=test_settings) == "provider-access"
    assert decrypt_secret(link.encrypted_refresh_token, settings=test_settings) == "provider-refresh"
    assert as_utc(link.token_expires_at) == clock.now + timedelta(seconds=3600)


@pytest.mark.asyncio
async def test_callback_state_is_single_use(db_session, service) -> None:
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)
    await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code", initiation.state)

    with pytest.raises(OAuthStateInvalidError):
        await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code", initiation.state)


@pytest.mark.asyncio
async def test_callback_rejects_cross_provider_state(db_session, service, factory) -> None:
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)

    with pytest.raises(ProviderMismatchError):
        await service.handle_callback(db_session, OAuthProviderType.MICROSOFT, "code", initiation.state)

    assert factory.exchanges == []
    assert db_session.execute(select(OAuthState)).first() is None


@pytest.mark.asyncio
async def test_returning_user_signs_in_again(db_session, service, factory) -> None:
    first = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)
    created = await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code-1", first.state)

    factory.tokens = OAuth2TokenSet(access_token="rotated-access")
    second = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)
    again = await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code-2", second.state)

    assert again.is_new_user is False
    assert again.user.id == created.user.id
    links = db_session.execute(select(OAuthProviderLink)).scalars().all()
    assert len(links) == 1
    assert links[0].encrypted_refresh_token is not None
    assert links[0].token_expires_at is None


@pytest.mark.asyncio
async def test_callback_conflicts_with_completed_account(db_session, active_user, service, factory) -> None:
    factory.profile = _profile(email="active@example.com")
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)

    with pytest.raises(OAuthEmailConflictError):
        await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code", initiation.state)

    assert db_session.execute(select(OAuthProviderLink)).first() is None


@pytest.mark.asyncio
async def test_callback_reuses_incomplete_account_with_same_email(db_session, make_user, service, factory) -> None:
    existing = make_user("oauth@example.com")
    initiation = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)

    result = await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code", initiation.state)

    assert result.is_new_user is False
    assert result.user.id == existing.id
    assert result.requires_password_setup is False


@pytest.mark.asyncio
async def test_callback_links_provider_to_signed_in_user(db_session, active_user, service, factory) -> None:
    factory.profile = _profile(OAuthProviderType.MICROSOFT, "ms-999", "work@example.com")
    initiation = service.initiate_oauth(db_session, OAuthProviderType.MICROSOFT, user_id=active_user.id)

    result = await service.handle_callback(db_session, OAuthProviderType.MICROSOFT, "code", initiation.state)

    assert result.is_new_user is False
    assert result.user.id == active_user.id
    link = db_session.execute(select(OAuthProviderLink)).scalar_one()
    assert link.user_id == active_user.id
    assert link.provider is OAuthProviderType.MICROSOFT
    assert link.email == "work@example.com"


@pytest.mark.asyncio
async def test_callback_refuses_link_owned_by_another_user(db_session, active_user, service, factory) -> None:
    first = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE)
    owner = await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code-1", first.state)

    factory.tokens = OAuth2TokenSet(access_token="intruder-access")
    linking = service.initiate_oauth(db_session, OAuthProviderType.GOOGLE, user_id=active_user.id)

    with pytest.raises(OAuthAccountLinkedElsewhereError):
        await service.handle_callback(db_session, OAuthProviderType.GOOGLE, "code-2", linking.state)

    db_session.rollback()
    link = db_session.execute(select(OAuthProviderLink)).scalar_one()
    assert link.user_id == owner.user.id
    assert decrypt_secret(link.encrypted_access_token, settings=service._settings) == "provider-access"
