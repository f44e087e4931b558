"""Service-layer exception hierarchy."""
from __future__ import annotations


class ServiceError(Exception):
    """Base service error."""


class NotFoundError(ServiceError):
    """Raised when an entity is not found."""


class ConflictError(ServiceError):
    """Raised when a domain conflict occurs."""


class ValidationError(ServiceError):
    """Raised when business validation fails."""


class AuthenticationError(ServiceError):
    """Raised when a webhook caller presents a bad shared secret."""


class TenantResolutionError(ValidationError):
    """Raised when no single tenant can own an inbound event."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
