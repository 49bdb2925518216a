"""Service exception types."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for lighter_service errors."""


class ConfigurationError(ServiceError):
    """Missing or malformed configuration (credentials, keys)."""


class PriceUnavailable(ServiceError):
    """No usable price for a symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"price unavailable for {symbol}")
        self.symbol = symbol


class StoreError(ServiceError):
    """A persistent-store operation failed or timed out."""
