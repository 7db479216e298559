"""Utilities for running Alembic migrations from application code."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from controlplane.core.config import settings

logger = logging.getLogger(__name__)


def _alembic_config() -> Config:
    """Build an Alembic config wired to the runtime settings."""

    project_root = Path(__file__).resolve().parents[2]
    config_path = project_root / "alembic.ini"
    script_location = project_root / "alembic"

    alembic_cfg = Config(str(config_path))
    alembic_cfg.set_main_option("script_location", str(script_location))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def run_migrations() -> None:
    """Apply all pending migrations up to the latest revision.

    Pooled application connections are disposed first so the upgrade is not
    blocked on locks they hold; the upgrade is skipped when the database is
    already at head.
    """
    from controlplane.db.session import engine as app_engine

    logger.info("Disposing application database connections before migrations")
    app_engine.dispose()

    cfg = _alembic_config()

    script = ScriptDirectory.from_config(cfg)
    heads = list(script.get_heads() or [])
    with app_engine.connect() as connection:
        current_rev = MigrationContext.configure(connection).get_current_revision()
    logger.info("Current database revision: %s (heads: %s)", current_rev, ",".join(heads))

    if current_rev and current_rev in heads:
        logger.info("Database is already at head revision, skipping migrations")
        return

    logger.info("Applying database migrations (alembic upgrade heads)")
    try:
        command.upgrade(cfg, "heads")
    except Exception:
        logger.exception("Alembic upgrade failed")
        raise
    logger.info("Database migrations applied successfully")


__all__ = ["run_migrations"]
