"""Trade log entries — the immutable audit trail of processed decisions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lighter_service.models.decision import Decision


class TradeStatus(str, Enum):
    RECEIVED = "received"
    REJECTED = "rejected"
    SIMULATED = "simulated"
    EXECUTED = "executed"
    FAILED = "failed"
    ERROR = "error"
    EMERGENCY_STOP = "emergency_stop"


class TradeLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision: dict[str, Any]
    status: TradeStatus
    reason: str | None = None
    result: dict[str, Any] | None = None
    trading_state: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def for_decision(
        cls,
        decision: Decision,
        status: TradeStatus,
        *,
        trading_state: dict[str, Any],
        created_at: datetime,
        reason: str | None = None,
        result: dict[str, Any] | None = None,
    ) -> "TradeLogEntry":
        return cls(
            decision=decision.model_dump(mode="json"),
            status=status,
            reason=reason,
            result=result,
            trading_state=trading_state,
            created_at=created_at,
        )
