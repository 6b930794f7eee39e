"""Error taxonomy for catalog validation and failover."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog errors."""


class PersistenceError(CatalogError):
    """Raised when catalog state cannot be read or written."""


class AvailabilityCheckError(CatalogError):
    """Raised when the status endpoint rejects a request."""


class TransientTransportError(AvailabilityCheckError):
    """Raised when availability could not be determined (timeout, 5xx, rate limit)."""


class QuotaExhausted(CatalogError):
    """Raised when the daily quota budget cannot cover another call."""

    def __init__(self, message: str = "daily quota budget exhausted", *, requested: int = 0, remaining: int = 0):
        super().__init__(message)
        self.requested = requested
        self.remaining = remaining


class ValidationRunActive(CatalogError):
    """Raised when another validation run already holds the run lease."""
