"""OAuth sign-up, sign-in and account linking."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from controlplane.core.clock import Clock, utcnow
from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.encryption import encrypt_secret
from controlplane.core.exceptions import ConflictError, UnauthorizedError
from controlplane.core.security import (
    create_onboarding_token,
    generate_code_challenge,
    generate_code_verifier,
)
from controlplane.integrations.oauth.base import OAuth2TokenSet, OAuthUserProfile
from controlplane.integrations.oauth.factory import OAuth2ProviderFactory
from controlplane.models.oauth_provider import OAuthProviderLink, OAuthProviderType
from controlplane.models.user import AccountStatus, OnboardingStep, User
from controlplane.schemas.oauth import OAuthInitiation, OAuthResult, OAuthUserSummary
from controlplane.services.oauth_state import OAuthStateService
from controlplane.services.users import get_user, get_user_by_email, normalize_email

logger = logging.getLogger(__name__)


class ProviderMismatchError(UnauthorizedError):
    reason = "oauth_provider_mismatch"
    default_message = "OAuth provider does not match the initiated sign-in."


class OAuthEmailConflictError(ConflictError):
    reason = "oauth_email_conflict"
    default_message = "An account with this email already exists. Please log in with your password."


class OAuthAccountLinkedElsewhereError(ConflictError):
    reason = "oauth_account_linked_elsewhere"
    default_message = "This provider account is already linked to another user."


class OAuthService:
    """Drives the authorization-code + PKCE round trip and resolves the local user."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        state_service: OAuthStateService | None = None,
        provider_factory: OAuth2ProviderFactory | None = None,
        clock: Clock = utcnow,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._state_service = state_service or OAuthStateService(settings=self._settings, clock=clock)
        self._provider_factory = provider_factory or OAuth2ProviderFactory(self._settings)
        self._clock = clock
        self._logger = logger_ or logger

    def initiate_oauth(
        self,
        db: Session,
        provider: OAuthProviderType,
        user_id: uuid.UUID | None = None,
    ) -> OAuthInitiation:
        """Build the provider redirect URL bound to a fresh state and PKCE pair."""

        adapter = self._provider_factory.create_provider(provider)
        code_verifier = generate_code_verifier()
        state = self._state_service.generate_state(db, provider, user_id, code_verifier)
        url = adapter.get_authorization_url(state, generate_code_challenge(code_verifier))
        self._logger.info("OAuth flow initiated for provider %s (link: %s)", provider.value, user_id is not None)
        return OAuthInitiation(url=url, state=state)

    async def handle_callback(
        self,
        db: Session,
        provider: OAuthProviderType,
        code: str,
        state: str,
    ) -> OAuthResult:
        """Complete the round trip started by :meth:`initiate_oauth`.

        The state is consumed before anything else, so a replayed callback
        fails even if the provider exchange would have succeeded.
        """

        state_data = self._state_service.validate_and_consume_state(db, state)
        if state_data.provider is not provider:
            self._logger.warning(
                "OAuth callback for %s presented a state issued for %s",
                provider.value,
                state_data.provider.value,
            )
            raise ProviderMismatchError()

        adapter = self._provider_factory.create_provider(provider)
        tokens = await adapter.exchange_code_for_tokens(code, state_data.code_verifier)
        profile = await adapter.fetch_profile(tokens)

        user, is_new_user = self._resolve_user(db, profile, state_data.user_id)
        self._upsert_link(db, user, profile, tokens)
        db.commit()

        self._logger.info(
            "OAuth callback completed for user %s via %s (new user: %s)",
            user.id,
            provider.value,
            is_new_user,
        )
        return OAuthResult(
            onboarding_token=create_onboarding_token(user.id, settings=self._settings),
            user=OAuthUserSummary.model_validate(user),
            is_new_user=is_new_user,
            requires_password_setup=not user.has_password,
        )

    def _resolve_user(
        self,
        db: Session,
        profile: OAuthUserProfile,
        linking_user_id: Optional[uuid.UUID],
    ) -> tuple[User, bool]:
        if linking_user_id is not None:
            return get_user(db, linking_user_id), False

        existing = self._find_linked_user(db, profile) or get_user_by_email(db, profile.email)
        if existing is not None:
            if existing.onboarding_complete:
                raise OAuthEmailConflictError()
            return existing, False

        user = User(
            email=normalize_email(profile.email),
            password_hash=None,
            first_name=profile.first_name,
            last_name=profile.last_name,
            email_verified=True,
            email_verified_at=self._clock(),
            onboarding_step=OnboardingStep.SET_PASSWORD,
            onboarding_complete=False,
            account_status=AccountStatus.PENDING_MOBILE,
        )
        db.add(user)
        db.flush()
        return user, True

    def _find_linked_user(self, db: Session, profile: OAuthUserProfile) -> Optional[User]:
        statement = (
            select(User)
            .join(OAuthProviderLink, OAuthProviderLink.user_id == User.id)
            .where(
                OAuthProviderLink.provider == profile.provider,
                OAuthProviderLink.provider_id == profile.provider_id,
            )
        )
        return db.execute(statement).scalar_one_or_none()

    def _upsert_link(
        self,
        db: Session,
        user: User,
        profile: OAuthUserProfile,
        tokens: OAuth2TokenSet,
    ) -> OAuthProviderLink:
        link = db.execute(
            select(OAuthProviderLink).where(
                OAuthProviderLink.provider == profile.provider,
                OAuthProviderLink.provider_id == profile.provider_id,
            )
        ).scalar_one_or_none()

        if link is not None and link.user_id != user.id:
            self._logger.warning(
                "%s account is linked to user %s; refusing to link it to %s",
                profile.provider.value,
                link.user_id,
                user.id,
            )
            raise OAuthAccountLinkedElsewhereError()

        if link is None:
            link = OAuthProviderLink(
                user_id=user.id,
                provider=profile.provider,
                provider_id=profile.provider_id,
            )
            db.add(link)

        link.email = normalize_email(profile.email)
        if profile.display_name:
            link.display_name = profile.display_name
        if profile.picture_url:
            link.profile_picture_url = profile.picture_url
        link.encrypted_access_token = encrypt_secret(tokens.access_token, settings=self._settings)
        if tokens.refresh_token:
            link.encrypted_refresh_token = encrypt_secret(tokens.refresh_token, settings=self._settings)
        link.token_expires_at = (
            self._clock() + timedelta(seconds=tokens.expires_in) if tokens.expires_in else None
        )
        db.flush()
        return link


__all__ = [
    "OAuthAccountLinkedElsewhereError",
    "OAuthEmailConflictError",
    "OAuthService",
    "ProviderMismatchError",
]
