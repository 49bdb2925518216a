"""ScheduleRunner — the periodic tasks and the halt/resume controls.

Each task runs on its own timer. A failing tick is logged and the task
waits for its next tick; no task can block or kill another. The only
shared mutable object is TradingState, and every mutation here is
synchronous.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import structlog

from lighter_service.config.schema import AppConfig
from lighter_service.errors import StoreError
from lighter_service.exchange.base import MarketDataFeed
from lighter_service.exchange.lighter import LighterClient
from lighter_service.exchange.public import PublicMarketClient
from lighter_service.market.cache import MarketCache
from lighter_service.market.context import agent_context_document, market_document
from lighter_service.models.state import HaltSource, TradingState
from lighter_service.store.aio import AsyncStore
from lighter_service.store.documents import (
    AGENT_CONTEXT,
    LIGHTER_DATA,
    MARKET_DATA,
    SERVICE_DOC_ID,
    SERVICE_STATUS,
)

log = structlog.get_logger("scheduler")

DAY = timedelta(days=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_utc_midnight(now: datetime) -> datetime:
    return (now + DAY).replace(hour=0, minute=0, second=0, microsecond=0)


def seconds_until_next_utc_midnight(now: datetime) -> float:
    return (next_utc_midnight(now) - now).total_seconds()


class ScheduleRunner:
    def __init__(
        self,
        config: AppConfig,
        state: TradingState,
        market: MarketCache,
        store: AsyncStore,
        feed: MarketDataFeed,
        *,
        public: PublicMarketClient | None = None,
        stream: LighterClient | None = None,
        status_extra: Callable[[], dict[str, Any]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.state = state
        self.market = market
        self.store = store
        self.feed = feed
        self.public = public
        self.stream = stream
        self._status_extra = status_extra or (lambda: {})
        self._clock = clock
        self._timeout_s = config.schedule.io_timeout_s
        self._started_monotonic = time.monotonic()
        self._fear_greed: int | None = None
        self._tasks: list[asyncio.Task] = []
        self.stream_reconnect_attempts = 0
        self.stream_connected = False

    # ── Halt / resume ─────────────────────────────────────────

    def halt(self, reason: str, source: HaltSource = HaltSource.MANUAL) -> None:
        self.state.halt(reason, source)
        log.warning("trading_halted", reason=reason, source=source.value)

    def resume(self) -> bool:
        """Clear any halt, including an emergency stop. Returns False if not halted."""
        if not self.state.trading_halted:
            return False
        log.warning(
            "trading_resumed",
            previous_reason=self.state.halt_reason,
            previous_source=self.state.halt_source.value if self.state.halt_source else None,
        )
        self.state.clear_halt()
        return True

    def reset_daily(self, now: datetime | None = None) -> bool:
        now = now or self._clock()
        before = self.state.snapshot()
        if not self.state.reset_daily(now):
            return False
        log.info(
            "daily_counters_reset",
            day=self.state.day_key,
            previous_trade_count=before["daily_trade_count"],
            previous_pnl=before["daily_pnl"],
            halt_cleared=before["trading_halted"] and not self.state.trading_halted,
        )
        return True

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> list[asyncio.Task]:
        sched = self.config.schedule
        periodic: list[tuple[str, float, Callable[[], Awaitable[None]]]] = [
            ("account_refresh", sched.account_poll_interval_s, self.refresh_account),
            ("heartbeat", sched.heartbeat_interval_s, self.write_heartbeat),
            ("trade_log_purge", sched.trade_log_purge_interval_s, self.purge_trade_logs),
        ]
        if self.public is not None:
            periodic.append(("market_data", sched.market_data_interval_s, self.refresh_market_data))
            periodic.append(("agent_context", sched.agent_context_interval_s, self.refresh_agent_context))

        for name, interval, fn in periodic:
            self._tasks.append(asyncio.create_task(self._periodic(name, interval, fn), name=name))
        self._tasks.append(asyncio.create_task(self._daily_reset_loop(), name="daily_reset"))
        if self.stream is not None and sched.stream_enabled:
            self._tasks.append(asyncio.create_task(self._stream_loop(), name="account_stream"))

        log.info("schedule_started", tasks=[t.get_name() for t in self._tasks])
        return list(self._tasks)

    async def stop(self) -> None:
        """Cancel every timer. Ticks in progress are abandoned."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        log.info("schedule_stopped")

    async def _periodic(
        self,
        name: str,
        interval_s: float,
        fn: Callable[[], Awaitable[None]],
    ) -> None:
        while True:
            try:
                await asyncio.wait_for(fn(), timeout=self._timeout_s * 2)
            except asyncio.TimeoutError:
                log.warning("task_timeout", task=name)
            except Exception:
                log.exception("task_failed", task=name)
            await asyncio.sleep(interval_s)

    async def _daily_reset_loop(self) -> None:
        while True:
            target = next_utc_midnight(self._clock())
            # Timers can fire early; sleep again until the boundary has passed.
            while (remaining := (target - self._clock()).total_seconds()) > 0:
                await asyncio.sleep(remaining)
            try:
                self.reset_daily(target)
            except Exception:
                log.exception("task_failed", task="daily_reset")

    # ── Tasks ─────────────────────────────────────────────────

    async def _write(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        try:
            await self.store.set_document(collection, doc_id, data)
        except StoreError as exc:
            log.warning("store_write_failed", collection=collection, doc_id=doc_id, error=str(exc))
            return False
        return True

    async def refresh_account(self) -> None:
        snapshot = await asyncio.wait_for(
            self.feed.get_account_snapshot(), timeout=self._timeout_s,
        )
        if snapshot is None:
            log.debug("account_snapshot_unavailable")
            return
        self.market.update_account(snapshot)
        self.state.update_equity(float(snapshot.effective_equity))
        now = self._clock()
        await self._write(LIGHTER_DATA, "account", {
            "balance": snapshot.balance,
            "equity": snapshot.effective_equity,
            "daily_pnl": self.state.daily_pnl,
            "last_update": now.isoformat(),
        })
        await self._write(LIGHTER_DATA, "positions", {
            "positions": [p.model_dump(mode="json") for p in snapshot.positions],
            "position_count": len(snapshot.positions),
            "last_update": now.isoformat(),
        })
        log.debug("account_refreshed", balance=str(snapshot.balance),
                  positions=len(snapshot.positions), daily_pnl=self.state.daily_pnl)

    async def refresh_market_data(self) -> None:
        symbols = sorted(self.config.trading.allowed_symbols)
        quotes = await asyncio.wait_for(self.public.get_prices(symbols), timeout=self._timeout_s)
        for quote in quotes.values():
            self.market.update_price(quote)
        if quotes:
            await self._write(MARKET_DATA, "latest", market_document(quotes, self._clock()))
        log.debug("market_data_refreshed", symbols=sorted(quotes))

    async def refresh_agent_context(self) -> None:
        try:
            value = await asyncio.wait_for(self.public.get_fear_greed(), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            log.warning("fear_greed_timeout")
        else:
            if value is not None:
                self._fear_greed = value
        doc = agent_context_document(self.market.latest_quotes(), self._fear_greed, self._clock())
        await self._write(AGENT_CONTEXT, "market", doc)

    async def purge_trade_logs(self) -> None:
        removed = await self.store.purge_expired_trade_logs()
        if removed:
            log.info("trade_logs_purged", removed=removed)

    # ── Status ────────────────────────────────────────────────

    def status_document(self, status: str) -> dict[str, Any]:
        now = self._clock()
        return {
            "status": status,
            "pid": os.getpid(),
            "last_update": now.isoformat(),
            "uptime_s": round(time.monotonic() - self._started_monotonic, 1),
            "trading_enabled": self.config.trading.enabled,
            "trading_state": self.state.snapshot(),
            "stream_connected": self.stream_connected,
            "stream_reconnect_attempts": self.stream_reconnect_attempts,
            **self._status_extra(),
        }

    async def write_status(self, status: str) -> bool:
        ok = await self._write(SERVICE_STATUS, SERVICE_DOC_ID, self.status_document(status))
        if not ok:
            log.warning("heartbeat_write_failed", status=status)
        return ok

    async def write_heartbeat(self) -> None:
        await self.write_status("running")

    # ── Account stream ────────────────────────────────────────

    async def _stream_loop(self) -> None:
        """Consume the exchange push stream, reconnecting with linear backoff.

        After the configured number of consecutive failures the stream is
        abandoned and the service carries on with polling only.
        """
        sched = self.config.schedule
        while True:
            try:
                async for msg in self.stream.stream_account_updates():
                    if not self.stream_connected:
                        self.stream_connected = True
                        self.stream_reconnect_attempts = 0
                        log.info("account_stream_connected")
                    await self.handle_stream_message(msg)
                log.info("account_stream_closed")
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("account_stream_error")
            self.stream_connected = False

            if self.stream_reconnect_attempts >= sched.stream_max_reconnect_attempts:
                log.error(
                    "account_stream_abandoned",
                    attempts=self.stream_reconnect_attempts,
                    fallback="polling",
                )
                return
            self.stream_reconnect_attempts += 1
            delay = sched.stream_reconnect_delay_s * self.stream_reconnect_attempts
            log.info(
                "account_stream_reconnecting",
                attempt=self.stream_reconnect_attempts,
                max_attempts=sched.stream_max_reconnect_attempts,
                delay_s=delay,
            )
            await asyncio.sleep(delay)

    async def handle_stream_message(self, msg: dict[str, Any]) -> None:
        kind = msg.get("type")
        data = msg.get("data") or {}
        now = self._clock().isoformat()

        if kind == "balance_update":
            balance = data.get("balance")
            if balance is not None:
                self.market.update_balance(Decimal(str(balance)))
            await self._write(LIGHTER_DATA, "balance", {**data, "last_update": now})
        elif kind == "position_update":
            await self._write(LIGHTER_DATA, "positions", {
                "positions": data.get("positions") or [],
                "position_count": len(data.get("positions") or []),
                "last_update": now,
            })
        elif kind == "trade_executed":
            log.info("exchange_trade_reported", side=data.get("side"), size=data.get("size"),
                     symbol=data.get("symbol"), price=data.get("price"))
            await self._write(LIGHTER_DATA, "last_execution", {**data, "executed_at": now})
        elif kind == "market_data":
            await self._write(MARKET_DATA, "latest", {**data, "last_update": now})
        else:
            log.debug("account_stream_message", type=kind)
