"""Market and agent-context documents derived from the latest quotes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from lighter_service.models.market import PriceQuote

TREND_THRESHOLD_PCT = 2.0


def classify_trend(change_24h_pct: float | None) -> str:
    """bullish / bearish / sideways from the 24h price change."""
    if change_24h_pct is None:
        return "sideways"
    if change_24h_pct > TREND_THRESHOLD_PCT:
        return "bullish"
    if change_24h_pct < -TREND_THRESHOLD_PCT:
        return "bearish"
    return "sideways"


def classify_sentiment(fear_greed: int) -> str:
    if fear_greed > 75:
        return "extreme_greed"
    if fear_greed > 55:
        return "greed"
    if fear_greed > 45:
        return "neutral"
    if fear_greed > 25:
        return "fear"
    return "extreme_fear"


def market_document(quotes: dict[str, PriceQuote], now: datetime) -> dict[str, Any]:
    """Flat ``<sym>Price`` / ``<sym>Change24h`` fields, as dashboards read them."""
    doc: dict[str, Any] = {"last_update": now.isoformat()}
    for symbol, quote in sorted(quotes.items()):
        key = symbol.lower()
        doc[f"{key}Price"] = float(quote.price)
        doc[f"{key}Change24h"] = quote.change_24h_pct or 0.0
    return doc


def agent_context_document(
    quotes: dict[str, PriceQuote],
    fear_greed: int | None,
    now: datetime,
    trend_symbol: str = "BTC",
) -> dict[str, Any]:
    """Context snapshot read by trading agents before they decide."""
    doc: dict[str, Any] = {"last_update": now.isoformat()}
    for symbol, quote in sorted(quotes.items()):
        doc[f"{symbol.lower()}Price"] = float(quote.price)

    reference = quotes.get(trend_symbol)
    doc["trend"] = classify_trend(reference.change_24h_pct if reference else None)

    if fear_greed is not None:
        doc["fearGreed"] = fear_greed
        doc["marketSentiment"] = classify_sentiment(fear_greed)
    return doc
