"""DecisionProcessor — the decision state machine.

    Idle -> Received -> ShortCircuited (HOLD, EMERGENCY_STOP)
                     -> Validating -> Rejected
                                   -> Simulated (kill switch off)
                                   -> Executing -> Executed | Failed | Error
         -> Idle

One decision at a time: the lock spans dedupe through the final log write,
so a second decision waits and is then checked against the counters the
first one left behind. Counter reads and writes never straddle an await.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from lighter_service.config.schema import TradingConfig
from lighter_service.execution.executor import TradeExecutor
from lighter_service.execution.safety import SafetyPolicy
from lighter_service.market.cache import MarketCache
from lighter_service.models.decision import Action, Decision
from lighter_service.models.state import HaltSource, TradingState
from lighter_service.models.trade_log import TradeLogEntry, TradeStatus
from lighter_service.service.shutdown import ShutdownInProgress, ShutdownManager
from lighter_service.store.aio import TradeJournal

log = structlog.get_logger("decision_processor")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecisionProcessor:
    def __init__(
        self,
        config: TradingConfig,
        state: TradingState,
        policy: SafetyPolicy,
        executor: TradeExecutor,
        journal: TradeJournal,
        market: MarketCache,
        *,
        shutdown: ShutdownManager | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.state = state
        self.policy = policy
        self.executor = executor
        self.journal = journal
        self.market = market
        self.shutdown = shutdown or ShutdownManager()
        self._clock = clock
        self._lock = asyncio.Lock()
        self._executing = False

    @property
    def is_executing(self) -> bool:
        return self._executing

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def wait_idle(self, timeout: float) -> bool:
        """Wait until no decision is being processed. False on timeout."""
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        self._lock.release()
        return True

    async def _record(
        self,
        decision: Decision,
        status: TradeStatus,
        *,
        reason: str | None = None,
        result: dict[str, Any] | None = None,
    ) -> None:
        entry = TradeLogEntry.for_decision(
            decision,
            status,
            reason=reason,
            result=result,
            trading_state=self.state.snapshot(),
            created_at=self._clock(),
        )
        await self.journal.record(entry)

    async def process(self, decision: Decision) -> TradeStatus | None:
        """Run one decision to a terminal state.

        Returns the terminal status, or None when the decision was
        discarded (duplicate, or the service is shutting down).
        """
        async with self._lock:
            return await self._process(decision)

    async def _process(self, decision: Decision) -> TradeStatus | None:
        if self.shutdown.is_shutting_down:
            log.warning("decision_ignored_shutting_down", decision_ts=decision.timestamp)
            return None

        if decision.timestamp == self.state.last_decision_id:
            log.debug("decision_duplicate", decision_ts=decision.timestamp)
            return None

        now = self._clock()
        self.state.last_decision_id = decision.timestamp
        # Catches a missed midnight timer; a no-op once today's reset ran.
        self.state.reset_daily(now)

        bound = log.bind(
            decision_ts=decision.timestamp,
            action=decision.action.value,
            symbol=decision.symbol,
            strategy=decision.strategy,
        )
        bound.info("decision_received", confidence=decision.confidence)
        await self._record(decision, TradeStatus.RECEIVED)

        if decision.action is Action.EMERGENCY_STOP:
            reason = decision.reasoning.strip() or "emergency stop"
            self.state.halt(reason, HaltSource.EMERGENCY_STOP)
            bound.critical("emergency_stop", reason=reason)
            await self._record(decision, TradeStatus.EMERGENCY_STOP, reason=reason)
            return TradeStatus.EMERGENCY_STOP

        if decision.action is Action.HOLD:
            bound.info("decision_hold")
            return TradeStatus.RECEIVED

        verdict = self.policy.evaluate(decision, self.state, self._clock())
        if not verdict.valid:
            bound.info("decision_rejected", reason=verdict.reason)
            await self._record(decision, TradeStatus.REJECTED, reason=verdict.reason)
            return TradeStatus.REJECTED

        if not self.config.enabled:
            preview = self.executor.preview(decision, self.market)
            bound.info("decision_simulated", **preview)
            await self._record(
                decision,
                TradeStatus.SIMULATED,
                reason="trading disabled",
                result=preview,
            )
            return TradeStatus.SIMULATED

        return await self._execute(decision, bound)

    async def _execute(
        self,
        decision: Decision,
        bound: structlog.stdlib.BoundLogger,
    ) -> TradeStatus:
        self._executing = True
        try:
            async with self.shutdown.order_in_flight():
                result = await self.executor.execute(decision, self.market)
        except ShutdownInProgress as exc:
            bound.warning("decision_rejected", reason=str(exc))
            await self._record(decision, TradeStatus.REJECTED, reason="service shutting down")
            return TradeStatus.REJECTED
        except Exception as exc:
            bound.exception("execution_error")
            await self._record(decision, TradeStatus.ERROR, reason=str(exc) or type(exc).__name__)
            return TradeStatus.ERROR
        finally:
            self._executing = False

        if result.success:
            self.state.record_trade(self._clock())
            bound.info(
                "trade_executed",
                order_id=result.order_id,
                side=result.side,
                size=str(result.size),
                price=str(result.price),
                daily_trade_count=self.state.daily_trade_count,
            )
            await self._record(decision, TradeStatus.EXECUTED, result=result.to_dict())
            return TradeStatus.EXECUTED

        bound.warning(
            "trade_failed",
            failure=result.failure.value if result.failure else None,
            error=result.error,
        )
        await self._record(
            decision,
            TradeStatus.FAILED,
            reason=result.error,
            result=result.to_dict(),
        )
        return TradeStatus.FAILED
