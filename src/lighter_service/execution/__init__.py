"""Decision validation and trade execution."""

from lighter_service.execution.executor import (
    ExecutionResult,
    FailureKind,
    TradeExecutor,
    build_order_payload,
)
from lighter_service.execution.processor import DecisionProcessor
from lighter_service.execution.safety import SafetyPolicy, SafetyVerdict
from lighter_service.execution.sizing import calculate_notional_usd, calculate_quantity, side_for
from lighter_service.execution.slot import LatestDecisionSlot

__all__ = [
    "DecisionProcessor",
    "ExecutionResult",
    "FailureKind",
    "LatestDecisionSlot",
    "SafetyPolicy",
    "SafetyVerdict",
    "TradeExecutor",
    "build_order_payload",
    "calculate_notional_usd",
    "calculate_quantity",
    "side_for",
]
