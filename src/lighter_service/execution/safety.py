"""Safety policy — the ordered pre-trade checks.

Checks run in a fixed order and the first failure wins. Evaluation only
reads TradingState, with one exception: when the daily loss limit is hit
it trips the circuit breaker (halts trading) before rejecting.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from lighter_service.config.schema import TradingConfig
from lighter_service.models.decision import Decision
from lighter_service.models.state import DAILY_LOSS_HALT_REASON, HaltSource, TradingState


@dataclass(frozen=True)
class SafetyVerdict:
    """Result of a safety evaluation — valid, or rejected with a reason."""

    valid: bool
    reason: str | None = None


ACCEPT = SafetyVerdict(valid=True)


def _reject(reason: str) -> SafetyVerdict:
    return SafetyVerdict(valid=False, reason=reason)


# ── Individual checks ─────────────────────────────────────────


def check_not_halted(state: TradingState) -> SafetyVerdict:
    if state.trading_halted:
        return _reject(f"trading halted: {state.halt_reason or 'no reason given'}")
    return ACCEPT


def check_tradable_action(decision: Decision) -> SafetyVerdict:
    if not decision.is_tradable:
        return _reject(f"action {decision.action.value} is not tradable")
    return ACCEPT


def check_symbol_allowed(decision: Decision, config: TradingConfig) -> SafetyVerdict:
    if decision.symbol not in config.allowed_symbols:
        allowed = ",".join(sorted(config.allowed_symbols))
        return _reject(f"symbol {decision.symbol} not allowed (allowed: {allowed})")
    return ACCEPT


def check_confidence(decision: Decision, config: TradingConfig) -> SafetyVerdict:
    if decision.confidence < config.min_confidence:
        return _reject(
            f"confidence {decision.confidence:.2f} below threshold {config.min_confidence:.2f}"
        )
    return ACCEPT


def check_daily_trades(state: TradingState, config: TradingConfig) -> SafetyVerdict:
    if state.daily_trade_count >= config.max_daily_trades:
        return _reject(
            f"daily trade limit reached ({state.daily_trade_count}/{config.max_daily_trades})"
        )
    return ACCEPT


def check_daily_loss(state: TradingState, config: TradingConfig) -> SafetyVerdict:
    """Circuit breaker. Halts trading as a side effect when the limit is hit."""
    if state.daily_pnl <= -config.max_daily_loss_usd:
        state.halt(DAILY_LOSS_HALT_REASON, HaltSource.DAILY_LIMIT)
        return _reject(
            f"daily loss limit reached (pnl {state.daily_pnl:.2f}, "
            f"limit -{config.max_daily_loss_usd:.2f})"
        )
    return ACCEPT


def check_cooldown(state: TradingState, config: TradingConfig, now: datetime) -> SafetyVerdict:
    if state.last_trade_time is None:
        return ACCEPT
    elapsed_ms = (now - state.last_trade_time).total_seconds() * 1000
    if elapsed_ms < config.cooldown_ms:
        remaining_s = (config.cooldown_ms - elapsed_ms) / 1000
        return _reject(f"cooldown active ({remaining_s:.0f}s remaining)")
    return ACCEPT


def check_credentials(configured: bool) -> SafetyVerdict:
    if not configured:
        return _reject("exchange credentials not configured")
    return ACCEPT


# ── Composite ─────────────────────────────────────────────────


class SafetyPolicy:
    """Composite pre-trade check against static limits and live counters."""

    def __init__(
        self,
        config: TradingConfig,
        credentials_configured: Callable[[], bool],
    ) -> None:
        self.config = config
        self._credentials_configured = credentials_configured

    def evaluate(
        self,
        decision: Decision,
        state: TradingState,
        now: datetime,
    ) -> SafetyVerdict:
        """Return the first failing verdict, or ACCEPT."""
        checks = (
            lambda: check_not_halted(state),
            lambda: check_tradable_action(decision),
            lambda: check_symbol_allowed(decision, self.config),
            lambda: check_confidence(decision, self.config),
            lambda: check_daily_trades(state, self.config),
            lambda: check_daily_loss(state, self.config),
            lambda: check_cooldown(state, self.config, now),
            lambda: check_credentials(self._credentials_configured()),
        )
        for check in checks:
            verdict = check()
            if not verdict.valid:
                return verdict
        return ACCEPT
