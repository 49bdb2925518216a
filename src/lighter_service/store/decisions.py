"""Decision source — a subscription over the agent_decisions/<strategy> document.

Agents overwrite one document per strategy. Every new version of that
document is delivered as a Decision; malformed versions are logged and
skipped. Store failures back off and the subscription carries on.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from lighter_service.errors import StoreError
from lighter_service.models.decision import Decision
from lighter_service.store.aio import AsyncStore
from lighter_service.store.documents import AGENT_DECISIONS

log = structlog.get_logger("decision_source")


def parse_decision(data: Any, strategy: str) -> Decision | None:
    """Validate a raw decision document. Returns None if it is malformed."""
    if not isinstance(data, dict):
        log.warning("decision_malformed", strategy=strategy, type=type(data).__name__)
        return None
    try:
        return Decision.model_validate({"strategy": strategy, **data})
    except ValidationError as exc:
        log.warning(
            "decision_malformed",
            strategy=strategy,
            errors=exc.error_count(),
            detail=str(exc.errors(include_url=False)[:3]),
        )
        return None


class StoreDecisionSource:
    def __init__(
        self,
        store: AsyncStore,
        strategy: str = "RL80",
        poll_interval_s: float = 2.0,
        error_backoff_s: float = 5.0,
        deliver_existing: bool = False,
    ) -> None:
        self._store = store
        self.strategy = strategy
        self._poll_interval_s = poll_interval_s
        self._error_backoff_s = error_backoff_s
        # When False, the document present at subscribe time is treated as
        # already seen: a restart must not replay the last decision.
        self._deliver_existing = deliver_existing

    async def subscribe(self) -> AsyncIterator[Decision]:
        """Yield decisions as new document versions appear. Never returns."""
        last_seen: datetime | None = None
        primed = self._deliver_existing
        log.info("decision_source_subscribed", strategy=self.strategy)

        while True:
            try:
                doc = await self._store.get_document(AGENT_DECISIONS, self.strategy)
            except StoreError as exc:
                log.warning(
                    "decision_source_error",
                    strategy=self.strategy,
                    error=str(exc),
                    retry_in=self._error_backoff_s,
                )
                await asyncio.sleep(self._error_backoff_s)
                continue

            if not primed:
                primed = True
                if doc is not None:
                    last_seen = doc.updated_at
                    log.info("decision_source_primed", strategy=self.strategy,
                             updated_at=doc.updated_at.isoformat())
            elif doc is not None and doc.updated_at != last_seen:
                last_seen = doc.updated_at
                decision = parse_decision(doc.data, self.strategy)
                if decision is not None:
                    yield decision

            await asyncio.sleep(self._poll_interval_s)
