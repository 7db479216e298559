"""Periodic removal of expired verification, OAuth state and session rows."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from sqlalchemy.orm import Session, sessionmaker

from controlplane.core.config import Settings, settings as default_settings
from controlplane.services.email_verification import EmailVerificationService
from controlplane.services.mobile_verification import MobileVerificationService
from controlplane.services.oauth_state import OAuthStateService
from controlplane.services.sessions import SessionService

logger = logging.getLogger(__name__)

_cleanup_task: asyncio.Task | None = None


def sweep_expired_records(
    db: Session,
    *,
    oauth_states: OAuthStateService | None = None,
    mobile_verifications: MobileVerificationService | None = None,
    email_verifications: EmailVerificationService | None = None,
    sessions: SessionService | None = None,
) -> Dict[str, int]:
    """Delete every expired row and return the number removed per table.

    Expiry is also checked at read time, so a skipped sweep never lets an
    expired record through.
    """

    counts = {
        "oauth_states": (oauth_states or OAuthStateService()).cleanup_expired_states(db),
        "mobile_verifications": (mobile_verifications or MobileVerificationService()).cleanup_expired(db),
        "email_verifications": (email_verifications or EmailVerificationService()).cleanup_expired(db),
        "sessions": (sessions or SessionService()).cleanup_expired(db),
    }
    logger.info("Expired records swept", extra=dict(counts))
    return counts


def _sweep_once(session_factory: sessionmaker) -> Dict[str, int]:
    db = session_factory()
    try:
        return sweep_expired_records(db)
    finally:
        db.close()


async def cleanup_task(interval_seconds: float, session_factory: sessionmaker | None = None) -> None:
    """Run :func:`sweep_expired_records` every ``interval_seconds`` until cancelled."""

    if session_factory is None:
        from controlplane.db.session import SessionLocal

        session_factory = SessionLocal

    logger.info("Starting cleanup task (interval %ss)", interval_seconds)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await asyncio.to_thread(_sweep_once, session_factory)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled, shutting down gracefully")
            break
        except Exception:
            logger.error("Cleanup task error", exc_info=True)

    logger.info("Cleanup task stopped")


def start_cleanup_scheduler(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
) -> None:
    """Start the background cleanup task on the running event loop."""
    global _cleanup_task

    if _cleanup_task is not None:
        logger.warning("Cleanup task already running")
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.error("No event loop running, cannot start cleanup scheduler")
        return

    interval = (settings or default_settings).cleanup_interval_seconds
    _cleanup_task = loop.create_task(cleanup_task(interval, session_factory))
    logger.info("Cleanup task started")


def stop_cleanup_scheduler() -> None:
    """Stop the background cleanup task."""
    global _cleanup_task

    if _cleanup_task is not None:
        _cleanup_task.cancel()
        _cleanup_task = None
        logger.info("Cleanup task stopped")


def is_cleanup_scheduler_running() -> bool:
    return _cleanup_task is not None and not _cleanup_task.done()


__all__ = [
    "cleanup_task",
    "is_cleanup_scheduler_running",
    "start_cleanup_scheduler",
    "stop_cleanup_scheduler",
    "sweep_expired_records",
]
