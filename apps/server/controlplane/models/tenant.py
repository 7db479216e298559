"""Tenant and tenant database configuration ORM models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from controlplane.db.base import Base


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    ARCHIVED = "ARCHIVED"


class DatabaseType(str, enum.Enum):
    SHARED = "SHARED"
    DEDICATED = "DEDICATED"


class Tenant(Base):
    """Customer organisation served either from a shared schema or a dedicated database."""

    __tablename__ = "tenants"
    __table_args__ = (
        UniqueConstraint("subdomain", name="uq_tenants_subdomain"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    subdomain: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    db_type: Mapped[DatabaseType] = mapped_column(
        Enum(DatabaseType, name="database_type"),
        nullable=False,
        default=DatabaseType.SHARED,
    )
    status: Mapped[TenantStatus] = mapped_column(
        Enum(TenantStatus, name="tenant_status"),
        nullable=False,
        default=TenantStatus.ACTIVE,
    )
    db_schema: Mapped[Optional[str]] = mapped_column(String(63), nullable=True)
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

    database_config: Mapped[Optional["TenantDatabaseConfig"]] = relationship(
        "TenantDatabaseConfig",
        back_populates="tenant",
        cascade="all, delete-orphan",
        uselist=False,
    )


class TenantDatabaseConfig(Base):
    """Connection details for a DEDICATED tenant; the password is Fernet-encrypted."""

    __tablename__ = "tenant_database_configs"
    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_tenant_database_configs_tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    db_host: Mapped[str] = mapped_column(String(255), nullable=False)
    db_port: Mapped[int] = mapped_column(Integer, nullable=False, default=5432)
    db_username: Mapped[str] = mapped_column(String(255), nullable=False)
    encrypted_db_password: Mapped[str] = mapped_column(Text, nullable=False)
    db_name: Mapped[str] = mapped_column(String(255), nullable=False)
    db_schema: Mapped[Optional[str]] = mapped_column(String(63), nullable=True)
    db_ssl_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="require")
    connection_pool_size: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
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

    tenant: Mapped["Tenant"] = relationship(
        "Tenant",
        back_populates="database_config",
    )


__all__ = ["DatabaseType", "Tenant", "TenantDatabaseConfig", "TenantStatus"]
