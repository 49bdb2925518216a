"""Persistent store — documents, trade log, decision subscription."""

from lighter_service.store.aio import AsyncStore, TradeJournal
from lighter_service.store.decisions import StoreDecisionSource, parse_decision
from lighter_service.store.documents import DocumentStore, StoredDocument

__all__ = [
    "AsyncStore",
    "DocumentStore",
    "StoreDecisionSource",
    "StoredDocument",
    "TradeJournal",
    "parse_decision",
]
