"""Tests for the decision processor state machine."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import httpx

from lighter_service.config import TradingConfig
from lighter_service.execution.executor import TradeExecutor
from lighter_service.execution.processor import DecisionProcessor
from lighter_service.execution.safety import SafetyPolicy
from lighter_service.market.cache import MarketCache
from lighter_service.models import Decision, GatewayResult, HaltSource, TradeStatus, TradingState
from lighter_service.service.shutdown import ShutdownManager

from conftest import (
    NOW,
    FakeClock,
    FakeFeed,
    FakeGateway,
    FakeSigner,
    MemoryJournal,
    make_decision,
)

MARKETS = {"ETH": 0, "BTC": 1}


class Harness:
    """A processor wired to fakes. Build inside the running event loop."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        gateway: FakeGateway | None = None,
        feed: FakeFeed | None = None,
        journal: MemoryJournal | None = None,
        configured: bool = True,
        **limits,
    ) -> None:
        self.config = TradingConfig(enabled=enabled, **limits)
        self.state = TradingState()
        self.clock = FakeClock(NOW)
        self.gateway = gateway or FakeGateway()
        self.journal = journal or MemoryJournal()
        self.market = MarketCache()
        self.shutdown = ShutdownManager()
        signer = FakeSigner(configured)
        executor = TradeExecutor(
            self.config,
            feed or FakeFeed({"ETH": "2000", "BTC": "50000"}),
            self.gateway,
            signer,
            MARKETS,
            io_timeout_s=1.0,
        )
        self.processor = DecisionProcessor(
            self.config,
            self.state,
            SafetyPolicy(self.config, credentials_configured=lambda: signer.configured),
            executor,
            self.journal,
            self.market,
            shutdown=self.shutdown,
            clock=self.clock,
        )

    async def process(self, decision):
        return await self.processor.process(decision)


def _run(scenario):
    return asyncio.run(scenario())


class TestExecution:
    def test_buy_executes_and_counts(self):
        async def scenario():
            h = Harness()
            status = await h.process(make_decision("BUY", "ETH", 0.9, timestamp=1))
            return h, status

        h, status = _run(scenario)
        assert status is TradeStatus.EXECUTED
        assert h.state.daily_trade_count == 1
        assert h.state.last_trade_time == NOW
        assert h.journal.statuses == ["received", "executed"]
        executed = h.journal.entries[-1]
        assert executed.result["size"] == "0.04500000"
        assert executed.result["side"] == "buy"
        payload, _ = h.gateway.submitted[0]
        assert payload["base_amount"] == "0.04500000"

    def test_low_confidence_rejected(self):
        async def scenario():
            h = Harness()
            status = await h.process(make_decision(confidence=0.3, timestamp=1))
            return h, status

        h, status = _run(scenario)
        assert status is TradeStatus.REJECTED
        assert h.journal.entries[-1].reason == "confidence 0.30 below threshold 0.60"
        assert h.gateway.submitted == []
        assert h.state.daily_trade_count == 0

    def test_failed_execution_does_not_count(self):
        async def scenario():
            h = Harness(gateway=FakeGateway(GatewayResult(success=False, error="rejected")))
            status = await h.process(make_decision(timestamp=1))
            return h, status

        h, status = _run(scenario)
        assert status is TradeStatus.FAILED
        assert h.state.daily_trade_count == 0
        assert h.state.last_trade_time is None
        assert h.journal.entries[-1].reason == "rejected"
        assert h.journal.entries[-1].result["failure"] == "rejected"

    def test_transport_error_logged_as_failed(self):
        async def scenario():
            h = Harness(gateway=FakeGateway(httpx.ReadTimeout("slow")))
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.FAILED
        assert h.journal.entries[-1].result["failure"] == "transport"

    def test_unexpected_exception_logged_as_error(self):
        async def scenario():
            h = Harness(gateway=FakeGateway(RuntimeError("boom")))
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.ERROR
        assert h.journal.entries[-1].reason == "boom"
        assert h.state.daily_trade_count == 0
        assert h.processor.is_executing is False

    def test_sell_executes_without_position_check(self):
        async def scenario():
            h = Harness()
            return h, await h.process(make_decision("SELL", "BTC", 0.8, timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.EXECUTED
        payload, _ = h.gateway.submitted[0]
        assert payload["is_ask"] is True
        assert payload["market_index"] == 1


class TestShortCircuits:
    def test_hold_logged_once(self):
        async def scenario():
            h = Harness()
            return h, await h.process(make_decision("HOLD", timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.RECEIVED
        assert h.journal.statuses == ["received"]
        assert h.gateway.submitted == []

    def test_duplicate_timestamp_ignored(self):
        async def scenario():
            h = Harness()
            first = await h.process(make_decision(timestamp=7))
            h.clock.now = NOW + timedelta(hours=1)
            second = await h.process(make_decision(timestamp=7))
            return h, first, second

        h, first, second = _run(scenario)
        assert first is TradeStatus.EXECUTED
        assert second is None
        assert len(h.gateway.submitted) == 1
        assert h.journal.statuses == ["received", "executed"]

    def test_kill_switch_simulates(self):
        async def scenario():
            h = Harness(enabled=False)
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.SIMULATED
        assert h.gateway.submitted == []
        assert h.state.daily_trade_count == 0
        simulated = h.journal.entries[-1]
        assert simulated.reason == "trading disabled"
        assert simulated.result["side"] == "buy"

    def test_kill_switch_still_validates(self):
        async def scenario():
            h = Harness(enabled=False)
            return h, await h.process(make_decision(symbol="DOGE", timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.REJECTED

    def test_emergency_stop_halts(self):
        async def scenario():
            h = Harness()
            stop = await h.process(make_decision(
                "EMERGENCY_STOP", confidence=1.0, timestamp=1, reasoning="venue outage",
            ))
            h.clock.now = NOW + timedelta(hours=1)
            after = await h.process(make_decision(timestamp=2))
            return h, stop, after

        h, stop, after = _run(scenario)
        assert stop is TradeStatus.EMERGENCY_STOP
        assert after is TradeStatus.REJECTED
        assert h.state.halt_source is HaltSource.EMERGENCY_STOP
        assert h.journal.entries[1].reason == "venue outage"
        assert h.journal.entries[-1].reason == "trading halted: venue outage"
        assert h.gateway.submitted == []

    def test_bare_emergency_stop_halts(self):
        async def scenario():
            h = Harness()
            stop = Decision.model_validate(
                {"action": "EMERGENCY_STOP", "reasoning": "exchange down", "timestamp": 5},
            )
            status = await h.process(stop)
            h.clock.now = NOW + timedelta(minutes=5)
            after = await h.process(make_decision(timestamp=6))
            return h, status, after

        h, status, after = _run(scenario)
        assert status is TradeStatus.EMERGENCY_STOP
        assert after is TradeStatus.REJECTED
        assert h.state.halt_source is HaltSource.EMERGENCY_STOP
        assert h.state.halt_reason == "exchange down"
        assert h.gateway.submitted == []

    def test_emergency_stop_survives_daily_reset(self):
        async def scenario():
            h = Harness()
            await h.process(make_decision("EMERGENCY_STOP", timestamp=1))
            h.clock.now = NOW + timedelta(days=1)
            return h, await h.process(make_decision(timestamp=2))

        h, status = _run(scenario)
        assert status is TradeStatus.REJECTED
        assert h.state.trading_halted is True

    def test_rejected_while_shutting_down(self):
        async def scenario():
            h = Harness()
            h.shutdown.begin()
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is None
        assert h.journal.entries == []


class TestLimits:
    def test_cooldown(self):
        async def scenario():
            h = Harness(cooldown_ms=300_000)
            first = await h.process(make_decision(timestamp=1))
            h.clock.now = NOW + timedelta(seconds=60)
            second = await h.process(make_decision(timestamp=2))
            h.clock.now = NOW + timedelta(seconds=301)
            third = await h.process(make_decision(timestamp=3))
            return h, [first, second, third]

        h, statuses = _run(scenario)
        assert statuses == [TradeStatus.EXECUTED, TradeStatus.REJECTED, TradeStatus.EXECUTED]
        rejected = [e for e in h.journal.entries if e.status is TradeStatus.REJECTED]
        assert rejected[0].reason == "cooldown active (240s remaining)"

    def test_daily_trade_limit_and_reset(self):
        async def scenario():
            h = Harness(max_daily_trades=2, cooldown_ms=0)
            results = []
            for ts in (1, 2, 3):
                results.append(await h.process(make_decision(timestamp=ts)))
            h.clock.now = NOW + timedelta(days=1)
            results.append(await h.process(make_decision(timestamp=4)))
            return h, results

        h, results = _run(scenario)
        assert results == [
            TradeStatus.EXECUTED,
            TradeStatus.EXECUTED,
            TradeStatus.REJECTED,
            TradeStatus.EXECUTED,
        ]
        assert h.state.daily_trade_count == 1

    def test_circuit_breaker(self):
        async def scenario():
            h = Harness(max_daily_loss_usd=50)
            h.state.reset_daily(NOW)
            h.state.update_equity(1000.0)
            h.state.update_equity(940.0)
            first = await h.process(make_decision(timestamp=1))
            second = await h.process(make_decision(timestamp=2))
            return h, first, second

        h, first, second = _run(scenario)
        assert first is TradeStatus.REJECTED
        assert second is TradeStatus.REJECTED
        assert h.state.trading_halted is True
        assert h.state.halt_source is HaltSource.DAILY_LIMIT
        reasons = [e.reason for e in h.journal.entries if e.status is TradeStatus.REJECTED]
        assert reasons[0].startswith("daily loss limit reached")
        assert reasons[1] == "trading halted: daily loss limit"

    def test_circuit_breaker_clears_next_day(self):
        async def scenario():
            h = Harness(max_daily_loss_usd=50)
            h.state.reset_daily(NOW)
            h.state.update_equity(1000.0)
            h.state.update_equity(900.0)
            await h.process(make_decision(timestamp=1))
            h.clock.now = NOW + timedelta(days=1)
            return h, await h.process(make_decision(timestamp=2))

        h, status = _run(scenario)
        assert status is TradeStatus.EXECUTED
        assert h.state.trading_halted is False

    def test_manual_halt_rejects(self):
        async def scenario():
            h = Harness()
            h.state.halt("maintenance", HaltSource.MANUAL)
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.REJECTED
        assert h.journal.entries[-1].reason == "trading halted: maintenance"


class TestConcurrency:
    def test_concurrent_decisions_serialised(self):
        async def scenario():
            h = Harness(max_daily_trades=1, cooldown_ms=0, gateway=FakeGateway(delay=0.05))
            results = await asyncio.gather(
                h.process(make_decision(timestamp=1)),
                h.process(make_decision(timestamp=2)),
            )
            return h, results

        h, results = _run(scenario)
        assert sorted(r.value for r in results) == ["executed", "rejected"]
        assert len(h.gateway.submitted) == 1
        assert h.state.daily_trade_count == 1

    def test_wait_idle(self):
        async def scenario():
            h = Harness(gateway=FakeGateway(delay=0.1))
            task = asyncio.create_task(h.process(make_decision(timestamp=1)))
            await asyncio.sleep(0.01)
            busy = h.processor.is_busy
            idle = await h.processor.wait_idle(timeout=1.0)
            await task
            return busy, idle

        busy, idle = _run(scenario)
        assert busy is True
        assert idle is True

    def test_in_flight_order_delays_shutdown(self):
        async def scenario():
            h = Harness(gateway=FakeGateway(delay=0.1))
            task = asyncio.create_task(h.process(make_decision(timestamp=1)))
            await asyncio.sleep(0.02)
            in_flight = h.shutdown.in_flight_count
            status = await h.shutdown.prepare_shutdown(timeout=1.0)
            return in_flight, status, await task

        in_flight, status, result = _run(scenario)
        assert in_flight == 1
        assert status["ready"] is True
        assert result is TradeStatus.EXECUTED


class TestJournalFailure:
    def test_state_kept_when_log_write_fails(self):
        async def scenario():
            h = Harness(journal=MemoryJournal(fail=True))
            return h, await h.process(make_decision(timestamp=1))

        h, status = _run(scenario)
        assert status is TradeStatus.EXECUTED
        assert h.state.daily_trade_count == 1
        assert h.state.last_decision_id == 1
