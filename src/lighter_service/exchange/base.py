"""Collaborator interfaces consumed by the execution core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from lighter_service.models.market import AccountSnapshot, GatewayResult, PriceQuote


class MarketDataFeed(ABC):
    """Current prices and account state. Callers bound each call with a timeout."""

    @abstractmethod
    async def get_price(self, symbol: str) -> PriceQuote | None:
        ...

    @abstractmethod
    async def get_account_snapshot(self) -> AccountSnapshot | None:
        ...


class OrderGateway(ABC):
    """Single-attempt order submission.

    Returns a GatewayResult for anything the venue answered (fill or
    rejection). Transport failures (timeouts, connection errors) raise.
    Implementations must never retry internally.
    """

    @abstractmethod
    async def submit(self, payload: dict[str, Any], signature: str) -> GatewayResult:
        ...
