"""Trade executor — sizes, signs and submits one accepted decision.

Gateway outcomes come back as an ExecutionResult, never as exceptions.
Failures are classified so the trade log can tell a venue rejection from a
transport failure whose outcome is unknown. Nothing is ever retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

import httpx
import structlog

from lighter_service.config.schema import TradingConfig
from lighter_service.errors import ConfigurationError, PriceUnavailable
from lighter_service.exchange.base import MarketDataFeed, OrderGateway
from lighter_service.exchange.signer import LighterSigner
from lighter_service.execution.sizing import calculate_notional_usd, calculate_quantity, side_for
from lighter_service.market.cache import MarketCache
from lighter_service.models.decision import Decision
from lighter_service.models.market import PriceQuote

log = structlog.get_logger("executor")


class FailureKind(str, Enum):
    PRICE_UNAVAILABLE = "price_unavailable"
    INVALID_SIZE = "invalid_size"
    NOT_CONFIGURED = "not_configured"
    REJECTED = "rejected"  # the venue answered no
    TRANSPORT = "transport"  # timeout / network; outcome unknown


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    order_id: str | None = None
    size: Decimal | None = None
    price: Decimal | None = None
    side: str | None = None
    notional_usd: Decimal | None = None
    error: str | None = None
    failure: FailureKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "order_id": self.order_id,
            "size": str(self.size) if self.size is not None else None,
            "price": str(self.price) if self.price is not None else None,
            "side": self.side,
            "notional_usd": str(self.notional_usd) if self.notional_usd is not None else None,
            "error": self.error,
            "failure": self.failure.value if self.failure else None,
        }


def build_order_payload(
    *,
    account_index: int,
    api_key_index: int,
    market_index: int,
    client_order_index: int,
    side: str,
    quantity: Decimal,
    price: Decimal,
) -> dict[str, Any]:
    """Market order, immediate-or-cancel.

    ``client_order_index`` carries the decision timestamp so the venue sees
    the same id for the same decision.
    """
    return {
        "account_index": account_index,
        "api_key_index": api_key_index,
        "market_index": market_index,
        "client_order_index": client_order_index,
        "side": side,
        "is_ask": side == "sell",
        "base_amount": str(quantity),
        "reference_price": str(price),
        "order_type": "market",
        "time_in_force": "immediate_or_cancel",
        "reduce_only": False,
    }


class TradeExecutor:
    def __init__(
        self,
        config: TradingConfig,
        feed: MarketDataFeed,
        gateway: OrderGateway,
        signer: LighterSigner,
        markets: dict[str, int],
        *,
        account_index: int = 0,
        api_key_index: int = 0,
        io_timeout_s: float = 15.0,
    ) -> None:
        self.config = config
        self._feed = feed
        self._gateway = gateway
        self._signer = signer
        self._markets = markets
        self._account_index = account_index
        self._api_key_index = api_key_index
        self._timeout_s = io_timeout_s

    # ── Price ─────────────────────────────────────────────────

    async def current_price(self, symbol: str, market: MarketCache) -> PriceQuote | None:
        """Live price from the feed, falling back to a fresh cached quote."""
        try:
            quote = await asyncio.wait_for(self._feed.get_price(symbol), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            log.warning("price_fetch_timeout", symbol=symbol, timeout=self._timeout_s)
            quote = None
        except httpx.HTTPError as exc:
            log.warning("price_fetch_failed", symbol=symbol, error=str(exc))
            quote = None
        if quote is not None:
            market.update_price(quote)
            return quote
        return market.get_price(symbol)

    async def require_price(self, symbol: str, market: MarketCache) -> PriceQuote:
        quote = await self.current_price(symbol, market)
        if quote is None or quote.price <= 0:
            raise PriceUnavailable(symbol)
        return quote

    # ── Sizing ────────────────────────────────────────────────

    def size_order(
        self,
        decision: Decision,
        price: Decimal,
        market: MarketCache,
    ) -> tuple[Decimal, Decimal]:
        """Return (notional_usd, quantity) for a decision at *price*."""
        notional = calculate_notional_usd(
            confidence=decision.confidence,
            max_position_size_usd=self.config.max_position_size_usd,
            override=decision.position_size_override,
            available_balance=market.available_balance(),
        )
        return notional, calculate_quantity(notional, price)

    def preview(self, decision: Decision, market: MarketCache) -> dict[str, Any]:
        """What execute() would send, from cached data only. No I/O."""
        quote = market.get_price(decision.symbol)
        notional = calculate_notional_usd(
            confidence=decision.confidence,
            max_position_size_usd=self.config.max_position_size_usd,
            override=decision.position_size_override,
            available_balance=market.available_balance(),
        )
        preview: dict[str, Any] = {
            "side": side_for(decision.action),
            "notional_usd": str(notional),
            "price": None,
            "size": None,
        }
        if quote is not None:
            preview["price"] = str(quote.price)
            preview["size"] = str(calculate_quantity(notional, quote.price))
        return preview

    # ── Execution ─────────────────────────────────────────────

    async def execute(self, decision: Decision, market: MarketCache) -> ExecutionResult:
        side = side_for(decision.action)

        try:
            quote = await self.require_price(decision.symbol, market)
        except PriceUnavailable as exc:
            return ExecutionResult(
                success=False,
                side=side,
                error=str(exc),
                failure=FailureKind.PRICE_UNAVAILABLE,
            )
        price = quote.price

        notional, quantity = self.size_order(decision, price, market)
        if quantity <= 0:
            return ExecutionResult(
                success=False,
                side=side,
                price=price,
                notional_usd=notional,
                error=f"order size is zero (notional {notional} USD)",
                failure=FailureKind.INVALID_SIZE,
            )

        market_index = self._markets.get(decision.symbol)
        if market_index is None:
            return ExecutionResult(
                success=False,
                side=side,
                price=price,
                error=f"no exchange market configured for {decision.symbol}",
                failure=FailureKind.NOT_CONFIGURED,
            )

        payload = build_order_payload(
            account_index=self._account_index,
            api_key_index=self._api_key_index,
            market_index=market_index,
            client_order_index=decision.timestamp,
            side=side,
            quantity=quantity,
            price=price,
        )
        try:
            signature = self._signer.sign_payload(payload)
        except ConfigurationError as exc:
            return ExecutionResult(
                success=False, side=side, error=str(exc), failure=FailureKind.NOT_CONFIGURED,
            )

        log.info(
            "order_submitting",
            symbol=decision.symbol,
            side=side,
            size=str(quantity),
            price=str(price),
            notional_usd=str(notional),
        )
        try:
            result = await asyncio.wait_for(
                self._gateway.submit(payload, signature),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            return ExecutionResult(
                success=False,
                side=side,
                size=quantity,
                price=price,
                notional_usd=notional,
                error=f"order submission timed out after {self._timeout_s}s (outcome unknown)",
                failure=FailureKind.TRANSPORT,
            )
        except (httpx.HTTPError, OSError) as exc:
            return ExecutionResult(
                success=False,
                side=side,
                size=quantity,
                price=price,
                notional_usd=notional,
                error=f"order submission failed: {exc}",
                failure=FailureKind.TRANSPORT,
            )

        if not result.success:
            return ExecutionResult(
                success=False,
                side=side,
                size=quantity,
                price=price,
                notional_usd=notional,
                error=result.error,
                failure=FailureKind.REJECTED,
            )
        return ExecutionResult(
            success=True,
            order_id=result.order_id,
            size=quantity,
            price=price,
            side=side,
            notional_usd=notional,
        )
