"""Ephemeral OAuth CSRF/PKCE correlator ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from controlplane.db.base import Base
from controlplane.models.oauth_provider import OAuthProviderType


class OAuthState(Base):
    """Signed state token awaiting its callback; deleted on first consumption."""

    __tablename__ = "oauth_states"
    __table_args__ = (
        UniqueConstraint("state_token", name="uq_oauth_states_state_token"),
        Index("ix_oauth_states_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    state_token: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[OAuthProviderType] = mapped_column(
        Enum(OAuthProviderType, name="oauth_provider_type"),
        nullable=False,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    code_verifier: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


__all__ = ["OAuthState"]
