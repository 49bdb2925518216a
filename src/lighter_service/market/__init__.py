"""Cached market state and derived context documents."""

from lighter_service.market.cache import MarketCache, PriceEntry
from lighter_service.market.context import (
    agent_context_document,
    classify_sentiment,
    classify_trend,
    market_document,
)

__all__ = [
    "MarketCache",
    "PriceEntry",
    "agent_context_document",
    "classify_sentiment",
    "classify_trend",
    "market_document",
]
