"""Translate domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from controlplane.core.exceptions import ControlPlaneError, ErrorKind

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.ATTEMPTS_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.DELIVERY: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UPSTREAM: status.HTTP_502_BAD_GATEWAY,
}


def status_for(error: ControlPlaneError) -> int:
    return _STATUS_BY_KIND.get(error.kind, status.HTTP_400_BAD_REQUEST)


def to_http_exception(error: ControlPlaneError) -> HTTPException:
    """Build the ``HTTPException`` a route should raise for ``error``."""

    status_code = status_for(error)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(
        status_code=status_code,
        detail={"reason": error.reason, "message": error.message},
        headers=headers,
    )


__all__ = ["status_for", "to_http_exception"]
