"""Document store — JSON documents and the trade log on top of SQLAlchemy.

Writes use upsert/merge semantics: ``set_document`` with ``merge=True``
shallow-merges the new fields into the stored document.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import delete, desc, select
from sqlalchemy.orm import Session, sessionmaker

from lighter_service.db.tables.documents import DocumentRow, TradeLogRow
from lighter_service.models.trade_log import TradeLogEntry

# Collections
SERVICE_STATUS = "service_status"
MARKET_DATA = "market_data"
AGENT_CONTEXT = "agent_context"
LIGHTER_DATA = "lighter_data"
AGENT_DECISIONS = "agent_decisions"

SERVICE_DOC_ID = "lighter_service"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredDocument:
    collection: str
    doc_id: str
    data: dict[str, Any]
    updated_at: datetime


class DocumentStore:
    """Synchronous store API. Each call opens and closes its own session."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        retention_days: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._retention = timedelta(days=retention_days)
        self._clock = clock

    # ── Documents ─────────────────────────────────────────────

    def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        """Upsert a document. With *merge*, existing top-level fields survive."""
        payload = to_jsonable_python(data)
        now = self._clock()
        with self._session_factory() as session:
            row = session.execute(
                select(DocumentRow).where(
                    DocumentRow.collection == collection,
                    DocumentRow.doc_id == doc_id,
                )
            ).scalar_one_or_none()
            if row is None:
                session.add(DocumentRow(
                    collection=collection,
                    doc_id=doc_id,
                    data=payload,
                    updated_at=now,
                ))
            else:
                # Assign a new dict so the JSON column is flagged dirty.
                row.data = {**row.data, **payload} if merge else payload
                row.updated_at = now
            session.commit()

    def get_document(self, collection: str, doc_id: str) -> StoredDocument | None:
        with self._session_factory() as session:
            row = session.execute(
                select(DocumentRow).where(
                    DocumentRow.collection == collection,
                    DocumentRow.doc_id == doc_id,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return StoredDocument(
                collection=row.collection,
                doc_id=row.doc_id,
                data=dict(row.data),
                updated_at=row.updated_at,
            )

    # ── Trade log ─────────────────────────────────────────────

    def add_trade_log(self, entry: TradeLogEntry) -> int:
        """Append one audit record and return its row id."""
        decision = entry.decision
        with self._session_factory() as session:
            row = TradeLogRow(
                created_at=entry.created_at,
                expires_at=entry.created_at + self._retention,
                status=entry.status.value,
                strategy=decision.get("strategy"),
                symbol=decision.get("symbol"),
                action=decision.get("action"),
                decision_ts=decision.get("timestamp"),
                reason=entry.reason,
                decision=to_jsonable_python(decision),
                result=to_jsonable_python(entry.result) if entry.result is not None else None,
                trading_state=to_jsonable_python(entry.trading_state),
            )
            session.add(row)
            session.commit()
            return row.id

    def recent_trade_logs(
        self,
        limit: int = 50,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        """Newest-first trade log rows as plain dicts."""
        with self._session_factory() as session:
            query = select(TradeLogRow).order_by(desc(TradeLogRow.id)).limit(limit)
            if status is not None:
                query = query.where(TradeLogRow.status == status)
            rows = session.execute(query).scalars().all()
            return [
                {
                    "id": r.id,
                    "created_at": r.created_at.isoformat(),
                    "status": r.status,
                    "symbol": r.symbol,
                    "action": r.action,
                    "decision_ts": r.decision_ts,
                    "reason": r.reason,
                    "decision": r.decision,
                    "result": r.result,
                    "trading_state": r.trading_state,
                }
                for r in rows
            ]

    def purge_expired_trade_logs(self, now: datetime | None = None) -> int:
        """Delete trade log rows past their expiry. Returns the count removed."""
        cutoff = now or self._clock()
        with self._session_factory() as session:
            result = session.execute(
                delete(TradeLogRow).where(TradeLogRow.expires_at < cutoff)
            )
            session.commit()
            return result.rowcount or 0
