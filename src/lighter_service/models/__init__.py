"""Domain models."""

from lighter_service.models.decision import ALL_SYMBOLS, TRADABLE_ACTIONS, Action, Decision
from lighter_service.models.market import AccountSnapshot, GatewayResult, Position, PriceQuote
from lighter_service.models.state import (
    DAILY_LOSS_HALT_REASON,
    HaltSource,
    TradingState,
    utc_day_key,
)
from lighter_service.models.trade_log import TradeLogEntry, TradeStatus

__all__ = [
    "ALL_SYMBOLS",
    "DAILY_LOSS_HALT_REASON",
    "TRADABLE_ACTIONS",
    "AccountSnapshot",
    "Action",
    "Decision",
    "GatewayResult",
    "HaltSource",
    "Position",
    "PriceQuote",
    "TradeLogEntry",
    "TradeStatus",
    "TradingState",
    "utc_day_key",
]
