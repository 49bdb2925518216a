"""MarketCache — latest prices and account state shared by the schedule and the executor."""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal

from lighter_service.models.market import AccountSnapshot, Position, PriceQuote


@dataclass
class PriceEntry:
    """A cached quote with the monotonic time it arrived."""

    quote: PriceQuote
    updated_at: float


class MarketCache:
    """In-process cache. Written by periodic refreshes and the account stream."""

    def __init__(self, staleness_threshold_s: float = 120.0) -> None:
        self._staleness_s = staleness_threshold_s
        self._prices: dict[str, PriceEntry] = {}
        self._account: AccountSnapshot | None = None

    # ── Prices ────────────────────────────────────────────────

    def update_price(self, quote: PriceQuote) -> None:
        self._prices[quote.symbol] = PriceEntry(quote=quote, updated_at=time.monotonic())

    def get_price(self, symbol: str) -> PriceQuote | None:
        """Cached quote if fresh, else None."""
        entry = self._prices.get(symbol)
        if entry is None:
            return None
        if time.monotonic() - entry.updated_at > self._staleness_s:
            return None
        return entry.quote

    def is_stale(self, symbol: str) -> bool:
        return self.get_price(symbol) is None

    def latest_quotes(self) -> dict[str, PriceQuote]:
        """All cached quotes regardless of age."""
        return {symbol: entry.quote for symbol, entry in self._prices.items()}

    # ── Account ───────────────────────────────────────────────

    @property
    def account(self) -> AccountSnapshot | None:
        return self._account

    def update_account(self, snapshot: AccountSnapshot) -> None:
        self._account = snapshot

    def update_balance(self, balance: Decimal) -> None:
        """Apply a pushed balance change to the cached snapshot."""
        if self._account is not None:
            self._account = self._account.model_copy(update={"balance": balance})

    def available_balance(self) -> Decimal | None:
        return self._account.balance if self._account is not None else None

    def position(self, symbol: str) -> Position | None:
        if self._account is None:
            return None
        for pos in self._account.positions:
            if pos.symbol == symbol:
                return pos
        return None
