"""Mobile (WhatsApp) verification ORM model."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import expression

from controlplane.db.base import Base

if TYPE_CHECKING:
    from controlplane.models.user import User


class MobileVerificationMethod(str, enum.Enum):
    WHATSAPP_QR = "WHATSAPP_QR"
    SMS_QR = "SMS_QR"
    MANUAL_OTP = "MANUAL_OTP"


class MobileVerification(Base):
    """Pending or completed phone proof, correlated by a short relay token.

    ``phone`` stays empty until the webhook reports which number sent the token.
    """

    __tablename__ = "mobile_verifications"
    __table_args__ = (
        UniqueConstraint("qr_verification_id", name="uq_mobile_verifications_qr_verification_id"),
        Index("ix_mobile_verifications_user_id", "user_id"),
        Index(
            "uq_mobile_verifications_verified_phone",
            "phone",
            unique=True,
            postgresql_where=text("is_verified"),
            sqlite_where=text("is_verified"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    phone: Mapped[str] = mapped_column(String(20), nullable=False, default="", server_default="")
    phone_country: Mapped[str] = mapped_column(String(10), nullable=False, default="", server_default="")
    method: Mapped[MobileVerificationMethod] = mapped_column(
        Enum(MobileVerificationMethod, name="mobile_verification_method"),
        nullable=False,
        default=MobileVerificationMethod.WHATSAPP_QR,
    )
    qr_verification_id: Mapped[str] = mapped_column(String(32), nullable=False)
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
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

    user: Mapped["User"] = relationship(
        "User",
        back_populates="mobile_verifications",
    )


__all__ = ["MobileVerification", "MobileVerificationMethod"]
