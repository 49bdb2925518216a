"""Market and account models exchanged with the exchange and data feeds."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field


class PriceQuote(BaseModel):
    symbol: str
    price: Decimal
    ts: datetime
    source: str = "exchange"
    change_24h_pct: float | None = None


class Position(BaseModel):
    symbol: str
    size: Decimal
    side: Literal["long", "short"] = "long"
    entry_price: Decimal | None = None
    unrealised_pnl: Decimal | None = None


class AccountSnapshot(BaseModel):
    balance: Decimal
    equity: Decimal | None = None
    positions: list[Position] = Field(default_factory=list)
    ts: datetime
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def effective_equity(self) -> Decimal:
        return self.equity if self.equity is not None else self.balance


class GatewayResult(BaseModel):
    """What the order gateway said about one submission."""

    success: bool
    order_id: str | None = None
    error: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)
