"""TradingState — process-wide counters guarding execution.

Owned by the running process. Not persisted authoritatively: a restart
starts from zero counters and an empty dedupe key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

DAILY_LOSS_HALT_REASON = "daily loss limit"


class HaltSource(str, Enum):
    DAILY_LIMIT = "daily_limit"  # cleared by the daily reset
    EMERGENCY_STOP = "emergency_stop"  # cleared manually only
    MANUAL = "manual"  # cleared manually only


def utc_day_key(now: datetime) -> str:
    return now.strftime("%Y-%m-%d")


@dataclass
class TradingState:
    last_trade_time: datetime | None = None
    daily_trade_count: int = 0
    daily_pnl: float = 0.0
    last_decision_id: int | None = None
    trading_halted: bool = False
    halt_reason: str | None = None
    halt_source: HaltSource | None = None
    day_key: str = ""  # "YYYY-MM-DD" of the last daily reset
    day_start_equity: float | None = None

    # ── Halt control ─────────────────────────────────────────

    def halt(self, reason: str, source: HaltSource) -> None:
        self.trading_halted = True
        self.halt_reason = reason
        self.halt_source = source

    def clear_halt(self) -> None:
        self.trading_halted = False
        self.halt_reason = None
        self.halt_source = None

    # ── Counters ──────────────────────────────────────────────

    def record_trade(self, now: datetime) -> None:
        """Count a successful execution. Call only after the gateway confirms."""
        self.last_trade_time = now
        self.daily_trade_count += 1

    def update_equity(self, equity: float) -> None:
        """Recompute daily P&L from account equity.

        The first equity seen after a daily reset becomes the day's baseline.
        """
        if self.day_start_equity is None:
            self.day_start_equity = equity
        self.daily_pnl = equity - self.day_start_equity

    def reset_daily(self, now: datetime) -> bool:
        """Zero the daily counters once per UTC day.

        Returns False (and does nothing) when the reset for *now*'s UTC day
        has already happened. A halt caused by a daily limit is cleared; an
        emergency or manual halt is left in place.
        """
        today = utc_day_key(now)
        if self.day_key == today:
            return False
        self.day_key = today
        self.daily_trade_count = 0
        self.daily_pnl = 0.0
        self.day_start_equity = None
        if self.trading_halted and self.halt_source is HaltSource.DAILY_LIMIT:
            self.clear_halt()
        return True

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy for logs and the status heartbeat."""
        return {
            "last_trade_time": self.last_trade_time.isoformat() if self.last_trade_time else None,
            "daily_trade_count": self.daily_trade_count,
            "daily_pnl": self.daily_pnl,
            "last_decision_id": self.last_decision_id,
            "trading_halted": self.trading_halted,
            "halt_reason": self.halt_reason,
            "halt_source": self.halt_source.value if self.halt_source else None,
            "day_key": self.day_key,
        }
