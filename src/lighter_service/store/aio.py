"""Async access to the DocumentStore.

SQLAlchemy sessions here are synchronous, so every call runs in a worker
thread and is bounded by a timeout. A timed-out call is reported as failed;
the thread is left to finish on its own.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from lighter_service.errors import StoreError
from lighter_service.models.trade_log import TradeLogEntry
from lighter_service.store.documents import DocumentStore, StoredDocument

log = structlog.get_logger("store")

T = TypeVar("T")


class AsyncStore:
    def __init__(self, store: DocumentStore, timeout_s: float = 15.0) -> None:
        self.store = store
        self.timeout_s = timeout_s

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise StoreError(f"{fn.__name__} timed out after {self.timeout_s}s") from exc
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"{fn.__name__} failed: {exc}") from exc

    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        await self._call(self.store.set_document, collection, doc_id, data, merge=merge)

    async def get_document(self, collection: str, doc_id: str) -> StoredDocument | None:
        return await self._call(self.store.get_document, collection, doc_id)

    async def add_trade_log(self, entry: TradeLogEntry) -> int:
        return await self._call(self.store.add_trade_log, entry)

    async def recent_trade_logs(self, limit: int = 50, status: str | None = None) -> list[dict]:
        return await self._call(self.store.recent_trade_logs, limit, status)

    async def purge_expired_trade_logs(self) -> int:
        return await self._call(self.store.purge_expired_trade_logs)


class TradeJournal:
    """Writes trade log entries; a failed write is logged, never raised."""

    def __init__(self, store: AsyncStore) -> None:
        self._store = store

    async def record(self, entry: TradeLogEntry) -> bool:
        try:
            row_id = await self._store.add_trade_log(entry)
        except StoreError as exc:
            log.error(
                "trade_log_write_failed",
                status=entry.status.value,
                decision_ts=entry.decision.get("timestamp"),
                error=str(exc),
            )
            return False
        log.debug("trade_log_written", id=row_id, status=entry.status.value)
        return True
