"""Domain error taxonomy for the engagement engine."""

from __future__ import annotations


class EngagementError(Exception):
    """Base class for errors raised by engine services."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(EngagementError):
    """No caller identity could be established."""

    status_code = 401


class PermissionDenied(EngagementError):
    """Caller lacks the role required for the operation."""

    status_code = 403


class NotFound(EngagementError):
    """An entity id did not resolve."""

    status_code = 404


class ConstraintViolation(EngagementError):
    """A uniqueness or compare-and-set constraint rejected a write."""

    status_code = 409


class DeliveryFailure(EngagementError):
    """The email transport failed or timed out."""

    status_code = 502
