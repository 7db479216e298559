"""Domain error taxonomy shared by every service."""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Broad category of a domain failure, mapped to transport codes at the boundary."""

    VALIDATION = "validation"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    DELIVERY = "delivery"
    UPSTREAM = "upstream"


class ControlPlaneError(Exception):
    """Base class for domain failures.

    Subclasses set ``kind`` and a stable ``reason`` so callers can branch on the
    condition without parsing messages.
    """

    kind: ErrorKind = ErrorKind.BAD_REQUEST
    reason: str = "error"
    default_message: str = "Request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(ControlPlaneError):
    kind = ErrorKind.VALIDATION
    reason = "validation_failed"
    default_message = "Request is invalid."


class BadRequestError(ControlPlaneError):
    kind = ErrorKind.BAD_REQUEST
    reason = "bad_request"


class ConflictError(ControlPlaneError):
    kind = ErrorKind.CONFLICT
    reason = "conflict"
    default_message = "Resource already exists."


class NotFoundError(ControlPlaneError):
    kind = ErrorKind.NOT_FOUND
    reason = "not_found"
    default_message = "Resource not found."


class UnauthorizedError(ControlPlaneError):
    kind = ErrorKind.UNAUTHORIZED
    reason = "unauthorized"
    default_message = "Could not validate credentials."


class ForbiddenError(ControlPlaneError):
    kind = ErrorKind.FORBIDDEN
    reason = "forbidden"
    default_message = "Access to this resource is not permitted."


class AttemptsExceededError(ControlPlaneError):
    kind = ErrorKind.ATTEMPTS_EXCEEDED
    reason = "attempts_exceeded"
    default_message = "Maximum verification attempts exceeded."


class DeliveryError(ControlPlaneError):
    kind = ErrorKind.DELIVERY
    reason = "delivery_failed"
    default_message = "Message could not be delivered."


class UpstreamError(ControlPlaneError):
    kind = ErrorKind.UPSTREAM
    reason = "upstream_failed"
    default_message = "Upstream service call failed."


class UserNotFoundError(NotFoundError):
    reason = "user_not_found"
    default_message = "User not found."


class InvalidCredentialsError(UnauthorizedError):
    reason = "invalid_credentials"
    default_message = "Invalid email or password."


__all__ = [
    "AttemptsExceededError",
    "BadRequestError",
    "ConflictError",
    "ControlPlaneError",
    "DeliveryError",
    "ErrorKind",
    "ForbiddenError",
    "InvalidCredentialsError",
    "NotFoundError",
    "UnauthorizedError",
    "UpstreamError",
    "UserNotFoundError",
    "ValidationError",
]
