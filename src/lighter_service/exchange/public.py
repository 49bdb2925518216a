"""Public market data — CoinGecko spot prices and the Fear & Greed index."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import httpx

from lighter_service.config.schema import MarketDataConfig
from lighter_service.models.market import PriceQuote


class PublicMarketClient:
    """Async client for keyless market data endpoints."""

    def __init__(
        self,
        config: MarketDataConfig,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.coingecko_url = config.coingecko_url
        self.fear_greed_url = config.fear_greed_url
        self.coin_ids = dict(config.coin_ids)
        self._timeout_s = timeout_s
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport)
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def get_prices(self, symbols: list[str]) -> dict[str, PriceQuote]:
        """USD price and 24h change per symbol. Unknown symbols are omitted."""
        ids = {self.coin_ids[s]: s for s in symbols if s in self.coin_ids}
        if not ids:
            return {}
        http = await self._get_http()
        resp = await http.get(self.coingecko_url, params={
            "ids": ",".join(sorted(ids)),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        })
        resp.raise_for_status()
        body = resp.json()

        now = datetime.now(timezone.utc)
        quotes: dict[str, PriceQuote] = {}
        for coin_id, symbol in ids.items():
            entry = body.get(coin_id) or {}
            usd = entry.get("usd")
            if usd is None:
                continue
            quotes[symbol] = PriceQuote(
                symbol=symbol,
                price=Decimal(str(usd)),
                ts=now,
                source="coingecko",
                change_24h_pct=float(entry.get("usd_24h_change") or 0.0),
            )
        return quotes

    async def get_fear_greed(self) -> int | None:
        """Latest Fear & Greed index value (0-100), or None if absent."""
        http = await self._get_http()
        resp = await http.get(self.fear_greed_url)
        resp.raise_for_status()
        data = resp.json().get("data") or []
        if not data:
            return None
        try:
            return int(data[0].get("value"))
        except (TypeError, ValueError):
            return None
