"""Tenant records and their database connection settings."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from controlplane.core.config import Settings, settings as default_settings
from controlplane.core.encryption import encrypt_secret
from controlplane.core.exceptions import ConflictError, NotFoundError, ValidationError
from controlplane.models.tenant import DatabaseType, Tenant, TenantDatabaseConfig, TenantStatus
from controlplane.schemas.tenant import TenantCreate, TenantUpdate

logger = logging.getLogger(__name__)

_DEDICATED_REQUIRED_FIELDS = ("db_host", "db_name", "db_username", "db_password")
_CONFIG_FIELDS = (
    "db_host",
    "db_port",
    "db_username",
    "db_name",
    "db_schema",
    "db_ssl_mode",
    "connection_pool_size",
)


class TenantNotFoundError(NotFoundError):
    reason = "tenant_not_found"
    default_message = "Tenant not found."


class TenantSubdomainConflictError(ConflictError):
    reason = "tenant_subdomain_conflict"
    default_message = "A tenant with this subdomain already exists."

    def __init__(self, subdomain: str) -> None:
        super().__init__(f"Tenant with subdomain '{subdomain}' already exists")
        self.subdomain = subdomain


class TenantValidationError(ValidationError):
    reason = "tenant_invalid"
    default_message = "Tenant configuration is invalid."


class TenantService:
    """CRUD over tenants; provisioning the tenant database is handled elsewhere."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        logger_: logging.Logger | None = None,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        self._logger = logger_ or logger

    def _ensure_subdomain_available(
        self, db: Session, subdomain: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        statement = select(Tenant.id).where(Tenant.subdomain == subdomain)
        if exclude_id is not None:
            statement = statement.where(Tenant.id != exclude_id)
        if db.execute(statement).first() is not None:
            raise TenantSubdomainConflictError(subdomain)

    @staticmethod
    def _validate_database_settings(payload: TenantCreate) -> None:
        if payload.db_type is DatabaseType.SHARED:
            if not payload.db_schema:
                raise TenantValidationError("db_schema is required for SHARED database type")
            return

        missing = [name for name in _DEDICATED_REQUIRED_FIELDS if not getattr(payload, name)]
        if missing:
            raise TenantValidationError(
                f"{', '.join(missing)} required for DEDICATED database type"
            )

    def create(self, db: Session, payload: TenantCreate) -> Tenant:
        self._ensure_subdomain_available(db, payload.subdomain)
        self._validate_database_settings(payload)

        tenant = Tenant(
            subdomain=payload.subdomain,
            name=payload.name,
            description=payload.description,
            db_type=payload.db_type,
            status=payload.status,
            db_schema=payload.db_schema if payload.db_type is DatabaseType.SHARED else None,
        )
        if payload.db_type is DatabaseType.DEDICATED:
            tenant.database_config = TenantDatabaseConfig(
                db_host=payload.db_host,
                db_port=payload.db_port or 5432,
                db_username=payload.db_username,
                encrypted_db_password=encrypt_secret(payload.db_password, settings=self._settings),
                db_name=payload.db_name,
                db_schema=payload.db_schema,
                db_ssl_mode=payload.db_ssl_mode or "require",
                connection_pool_size=payload.connection_pool_size or 10,
            )

        db.add(tenant)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise TenantSubdomainConflictError(payload.subdomain) from exc

        self._logger.info("Created tenant %s (%s, %s)", tenant.id, tenant.subdomain, tenant.db_type.value)
        return tenant

    def list(self, db: Session, *, include_archived: bool = False) -> List[Tenant]:
        statement = (
            select(Tenant)
            .options(selectinload(Tenant.database_config))
            .order_by(Tenant.created_at.desc(), Tenant.subdomain)
        )
        if not include_archived:
            statement = statement.where(Tenant.status != TenantStatus.ARCHIVED)
        return list(db.execute(statement).scalars())

    def get(self, db: Session, tenant_id: uuid.UUID) -> Tenant:
        tenant = db.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError()
        return tenant

    def get_by_subdomain(self, db: Session, subdomain: str) -> Optional[Tenant]:
        statement = select(Tenant).where(Tenant.subdomain == subdomain)
        return db.execute(statement).scalar_one_or_none()

    def update(self, db: Session, tenant_id: uuid.UUID, payload: TenantUpdate) -> Tenant:
        """Apply the fields set on ``payload``.

        Database settings only apply to DEDICATED tenants; a missing config
        row is created when enough fields are supplied.
        """

        tenant = self.get(db, tenant_id)
        changes = payload.model_dump(exclude_unset=True)

        subdomain = changes.pop("subdomain", None)
        if subdomain is not None and subdomain != tenant.subdomain:
            self._ensure_subdomain_available(db, subdomain, exclude_id=tenant.id)
            tenant.subdomain = subdomain

        for name in ("name", "description", "status"):
            if name in changes:
                setattr(tenant, name, changes.pop(name))

        password = changes.pop("db_password", None)
        if tenant.db_type is DatabaseType.SHARED:
            if "db_schema" in changes:
                if not changes["db_schema"]:
                    raise TenantValidationError("db_schema is required for SHARED database type")
                tenant.db_schema = changes["db_schema"]
        elif changes or password:
            self._apply_database_config(tenant, changes, password)

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise TenantSubdomainConflictError(subdomain or tenant.subdomain) from exc

        self._logger.info("Updated tenant %s", tenant.id)
        return tenant

    def _apply_database_config(self, tenant: Tenant, changes: dict, password: str | None) -> None:
        config = tenant.database_config
        if config is None:
            missing = [
                name
                for name in ("db_host", "db_name", "db_username")
                if not changes.get(name)
            ]
            if missing or not password:
                raise TenantValidationError(
                    "db_host, db_name, db_username and db_password are required to configure a DEDICATED database"
                )
            config = TenantDatabaseConfig(
                db_host=changes["db_host"],
                db_username=changes["db_username"],
                db_name=changes["db_name"],
                encrypted_db_password=encrypt_secret(password, settings=self._settings),
            )
            tenant.database_config = config
        elif password:
            config.encrypted_db_password = encrypt_secret(password, settings=self._settings)

        for name in _CONFIG_FIELDS:
            value = changes.get(name)
            if value is not None:
                setattr(config, name, value)

    def archive(self, db: Session, tenant_id: uuid.UUID) -> Tenant:
        """Soft delete: the row stays, its status becomes ARCHIVED."""

        tenant = self.get(db, tenant_id)
        tenant.status = TenantStatus.ARCHIVED
        db.commit()
        self._logger.info("Archived tenant %s", tenant.id)
        return tenant


__all__ = [
    "TenantNotFoundError",
    "TenantService",
    "TenantSubdomainConflictError",
    "TenantValidationError",
]
