"""Single-slot buffer between the decision subscription and the processor.

Only the newest pending decision is kept: a stale trading signal is worse
than a dropped one. A pending EMERGENCY_STOP is never displaced by a
trading decision.
"""

from __future__ import annotations

import asyncio

import structlog

from lighter_service.models.decision import Action, Decision

log = structlog.get_logger("decision_slot")


class LatestDecisionSlot:
    def __init__(self) -> None:
        self._pending: Decision | None = None
        self._ready = asyncio.Event()
        self.dropped = 0

    @property
    def pending(self) -> Decision | None:
        return self._pending

    def put(self, decision: Decision) -> Decision | None:
        """Offer a decision. Returns the decision that was dropped, if any."""
        current = self._pending
        if (
            current is not None
            and current.action is Action.EMERGENCY_STOP
            and decision.action is not Action.EMERGENCY_STOP
        ):
            dropped = decision
        else:
            dropped = current
            self._pending = decision
            self._ready.set()

        if dropped is not None:
            self.dropped += 1
            log.warning(
                "decision_superseded",
                dropped_ts=dropped.timestamp,
                dropped_action=dropped.action.value,
                pending_ts=self._pending.timestamp,
            )
        return dropped

    async def get(self) -> Decision:
        """Wait for and take the pending decision."""
        while self._pending is None:
            self._ready.clear()
            await self._ready.wait()
        decision, self._pending = self._pending, None
        return decision
