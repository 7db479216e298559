"""SQLAlchemy declarative base for ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Import model modules so SQLAlchemy registers the mappers during startup.
from controlplane.models import (  # noqa: E402,F401
    email_verification,
    mobile_verification,
    oauth_provider,
    oauth_state,
    session,
    tenant,
    user,
)


__all__ = ["Base"]
