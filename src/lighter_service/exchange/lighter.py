"""Lighter exchange client — REST + WebSocket.

Implements MarketDataFeed and OrderGateway for the execution core. Response
parsing is tolerant: field names differ between API versions, so each
value is read from the first key that is present.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import websockets

from lighter_service.config.schema import LighterConfig
from lighter_service.exchange.base import MarketDataFeed, OrderGateway
from lighter_service.exchange.signer import LighterSigner
from lighter_service.models.market import AccountSnapshot, GatewayResult, Position, PriceQuote


def _first(d: dict, *keys: str) -> Any:
    for key in keys:
        value = d.get(key)
        if value is not None:
            return value
    return None


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class LighterClient(MarketDataFeed, OrderGateway):
    """Async client for Lighter's REST and WebSocket APIs."""

    def __init__(
        self,
        config: LighterConfig,
        signer: LighterSigner,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.ws_url = config.ws_url
        self.account_index = config.account_index
        self.api_key_index = config.api_key_index
        self.markets = dict(config.markets)
        self.signer = signer
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

    # --- REST ---

    async def _get(self, path: str, params: dict | None = None, auth: bool = False) -> Any:
        http = await self._get_http()
        headers = self.signer.auth_headers() if auth else None
        resp = await http.get(f"{self.base_url}{path}", params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def get_price(self, symbol: str) -> PriceQuote | None:
        """Last trade price for a symbol's market, or None if unknown."""
        market_id = self.markets.get(symbol)
        if market_id is None:
            return None
        data = await self._get("/api/v1/orderBookDetails", params={"market_id": market_id})
        details = (data.get("order_book_details") or []) if isinstance(data, dict) else []
        for entry in details:
            if entry.get("market_id") != market_id:
                continue
            price = _decimal(_first(entry, "last_trade_price", "mark_price", "index_price"))
            if price is None or price <= 0:
                return None
            change = entry.get("daily_price_change")
            return PriceQuote(
                symbol=symbol,
                price=price,
                ts=datetime.now(timezone.utc),
                source="lighter",
                change_24h_pct=float(change) if change is not None else None,
            )
        return None

    async def get_account_snapshot(self) -> AccountSnapshot | None:
        """Balance and open positions. None when credentials are not configured."""
        if not self.signer.configured:
            return None
        data = await self._get(
            "/api/v1/account",
            params={"by": "index", "value": self.account_index},
            auth=True,
        )
        return self.parse_account(data)

    @classmethod
    def parse_account(cls, data: Any) -> AccountSnapshot | None:
        """Normalise an account response into an AccountSnapshot."""
        if isinstance(data, dict) and isinstance(data.get("accounts"), list):
            data = data["accounts"][0] if data["accounts"] else None
        if not isinstance(data, dict):
            return None
        balance = _decimal(_first(data, "available_balance", "collateral", "balance"))
        if balance is None:
            return None
        equity = _decimal(_first(data, "total_asset_value", "equity"))
        positions = [
            p for p in (cls.parse_position(raw) for raw in data.get("positions") or [])
            if p is not None
        ]
        return AccountSnapshot(
            balance=balance,
            equity=equity,
            positions=positions,
            ts=datetime.now(timezone.utc),
            raw=data,
        )

    @staticmethod
    def parse_position(raw: dict) -> Position | None:
        size = _decimal(_first(raw, "position", "size"))
        symbol = raw.get("symbol")
        if size is None or size == 0 or not symbol:
            return None
        sign = raw.get("sign")
        if sign is not None:
            side = "short" if int(sign) < 0 else "long"
        else:
            side = "short" if size < 0 else "long"
        return Position(
            symbol=str(symbol).upper(),
            size=abs(size),
            side=side,
            entry_price=_decimal(_first(raw, "avg_entry_price", "entry_price")),
            unrealised_pnl=_decimal(_first(raw, "unrealized_pnl", "unrealised_pnl")),
        )

    async def submit(self, payload: dict[str, Any], signature: str) -> GatewayResult:
        """Send one signed order. No retry: a resend could fill twice."""
        http = await self._get_http()
        resp = await http.post(
            f"{self.base_url}/api/v1/sendTx",
            json={"tx_info": payload, "signature": signature},
        )
        try:
            body = resp.json()
        except ValueError:
            body = {"message": resp.text}
        if not isinstance(body, dict):
            body = {"message": str(body)}

        code = body.get("code", resp.status_code)
        if resp.is_error or code != 200:
            return GatewayResult(
                success=False,
                error=str(_first(body, "message", "error") or f"HTTP {resp.status_code}"),
                raw=body,
            )
        order_id = _first(body, "order_id", "tx_hash", "id")
        return GatewayResult(
            success=True,
            order_id=str(order_id) if order_id is not None else None,
            raw=body,
        )

    # --- WebSocket ---

    async def stream_account_updates(self) -> AsyncGenerator[dict, None]:
        """Subscribe to account updates and yield parsed messages.

        Caller is responsible for reconnection (this generator exits on
        disconnect).
        """
        async with websockets.connect(self.ws_url) as ws:
            await ws.send(json.dumps({
                "type": "subscribe",
                "channel": f"account_all/{self.account_index}",
            }))
            async for raw in ws:
                msg = json.loads(raw)
                if isinstance(msg, dict):
                    yield msg
