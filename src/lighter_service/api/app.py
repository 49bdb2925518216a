"""FastAPI control surface for the running service.

The app is built per-process around live objects rather than loaded at
import time: status reads the in-memory TradingState, halt/resume mutate it.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from lighter_service import __version__
from lighter_service.config.schema import AppConfig
from lighter_service.errors import StoreError
from lighter_service.execution.processor import DecisionProcessor
from lighter_service.execution.slot import LatestDecisionSlot
from lighter_service.models.trade_log import TradeStatus
from lighter_service.service.scheduler import ScheduleRunner
from lighter_service.service.shutdown import ShutdownManager
from lighter_service.store.aio import AsyncStore

logger = structlog.get_logger("api")


class HaltRequest(BaseModel):
    reason: str = "manual halt"


def create_app(
    *,
    config: AppConfig,
    scheduler: ScheduleRunner,
    processor: DecisionProcessor,
    store: AsyncStore,
    shutdown: ShutdownManager,
    slot: Optional[LatestDecisionSlot] = None,
) -> FastAPI:
    app = FastAPI(
        title="Lighter Service API",
        description="Status and trading controls for the Lighter execution service",
        version=__version__,
    )
    state = scheduler.state

    @app.get("/api/health")
    async def health_check():
        """Liveness check."""
        return {
            "status": "stopping" if shutdown.is_shutting_down else "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/status")
    async def get_status():
        """Trading state, limits and task health."""
        doc = scheduler.status_document("stopping" if shutdown.is_shutting_down else "running")
        doc["limits"] = config.trading.model_dump(mode="json")
        doc["is_executing"] = processor.is_executing
        doc["shutdown"] = shutdown.get_status()
        if slot is not None:
            doc["decisions_superseded"] = slot.dropped
        return doc

    @app.get("/api/trades")
    async def list_trades(
        limit: int = Query(50, ge=1, le=500),
        status: Optional[TradeStatus] = None,
    ):
        """Most recent trade log entries, newest first."""
        try:
            rows = await store.recent_trade_logs(
                limit=limit, status=status.value if status else None,
            )
        except StoreError as exc:
            logger.warning("trade_log_query_failed", error=str(exc))
            raise HTTPException(status_code=503, detail="trade log unavailable")
        return {"count": len(rows), "trades": rows}

    @app.post("/api/trading/halt")
    async def halt_trading(body: Optional[HaltRequest] = None):
        """Stop accepting trades until resumed."""
        reason = (body or HaltRequest()).reason.strip() or "manual halt"
        scheduler.halt(reason)
        return {"trading_halted": True, "halt_reason": state.halt_reason}

    @app.post("/api/trading/resume")
    async def resume_trading():
        """Clear any halt, including one set by an emergency stop."""
        if not scheduler.resume():
            raise HTTPException(status_code=409, detail="trading is not halted")
        return {"trading_halted": False}

    return app
