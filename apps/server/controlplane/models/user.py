"""User ORM model definition."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, Index, String, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import expression

from controlplane.db.base import Base

if TYPE_CHECKING:
    from controlplane.models.email_verification import EmailVerification
    from controlplane.models.mobile_verification import MobileVerification
    from controlplane.models.oauth_provider import OAuthProviderLink
    from controlplane.models.session import UserSession


class OnboardingStep(str, enum.Enum):
    """Position of a user in the onboarding state machine."""

    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    MOBILE_VERIFICATION = "MOBILE_VERIFICATION"
    SET_PASSWORD = "SET_PASSWORD"
    COMPLETE = "COMPLETE"


class AccountStatus(str, enum.Enum):
    PENDING_EMAIL = "PENDING_EMAIL"
    PENDING_MOBILE = "PENDING_MOBILE"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DEACTIVATED = "DEACTIVATED"


class User(Base):
    """Represents a control-plane user going through (or past) onboarding."""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_email", "email"),
        Index(
            "uq_users_verified_phone",
            "phone",
            unique=True,
            postgresql_where=text("phone_verified"),
            sqlite_where=text("phone_verified"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    phone_country: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    phone_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    phone_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    onboarding_step: Mapped[OnboardingStep] = mapped_column(
        Enum(OnboardingStep, name="onboarding_step"),
        nullable=False,
        default=OnboardingStep.EMAIL_VERIFICATION,
    )
    onboarding_complete: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    account_status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, name="account_status"),
        nullable=False,
        default=AccountStatus.PENDING_EMAIL,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    email_verifications: Mapped[List["EmailVerification"]] = relationship(
        "EmailVerification",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    mobile_verifications: Mapped[List["MobileVerification"]] = relationship(
        "MobileVerification",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    oauth_providers: Mapped[List["OAuthProviderLink"]] = relationship(
        "OAuthProviderLink",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    sessions: Mapped[List["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def ready_to_complete(self) -> bool:
        """Every onboarding requirement is met but completion has not been recorded."""

        return (
            not self.onboarding_complete
            and self.email_verified
            and self.phone_verified
            and self.has_password
        )

    def mark_onboarding_complete(self) -> None:
        if not self.email_verified:
            raise ValueError("Onboarding cannot complete before the email is verified")
        self.onboarding_step = OnboardingStep.COMPLETE
        self.onboarding_complete = True
        self.account_status = AccountStatus.ACTIVE


__all__ = ["AccountStatus", "OnboardingStep", "User"]
