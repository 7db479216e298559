"""Tenant management schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from controlplane.models.tenant import DatabaseType, TenantStatus

SslMode = Literal["require", "prefer", "disable"]


class TenantCreate(BaseModel):
    subdomain: str = Field(min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$")
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    db_type: DatabaseType
    status: TenantStatus = TenantStatus.ACTIVE
    db_host: Optional[str] = None
    db_port: Optional[int] = Field(default=None, ge=1, le=65535)
    db_username: Optional[str] = None
    db_password: Optional[str] = None
    db_name: Optional[str] = None
    db_schema: Optional[str] = None
    db_ssl_mode: Optional[SslMode] = None
    connection_pool_size: Optional[int] = Field(default=None, ge=1, le=100)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class TenantUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""

    subdomain: Optional[str] = Field(default=None, min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$")
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    status: Optional[TenantStatus] = None
    db_host: Optional[str] = None
    db_port: Optional[int] = Field(default=None, ge=1, le=65535)
    db_username: Optional[str] = None
    db_password: Optional[str] = None
    db_name: Optional[str] = None
    db_schema: Optional[str] = None
    db_ssl_mode: Optional[SslMode] = None
    connection_pool_size: Optional[int] = Field(default=None, ge=1, le=100)

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class TenantDatabaseConfigRead(BaseModel):
    """Connection details without the password."""

    db_host: str
    db_port: int
    db_username: str
    db_name: str
    db_schema: Optional[str] = None
    db_ssl_mode: str
    connection_pool_size: int

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TenantRead(BaseModel):
    id: uuid.UUID
    subdomain: str
    name: str
    description: Optional[str] = None
    db_type: DatabaseType
    status: TenantStatus
    db_schema: Optional[str] = None
    database_config: Optional[TenantDatabaseConfigRead] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


__all__ = [
    "TenantCreate",
    "TenantDatabaseConfigRead",
    "TenantRead",
    "TenantUpdate",
]
