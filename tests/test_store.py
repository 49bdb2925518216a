"""Tests for the document store and its async wrapper."""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from decimal import Decimal

import pytest

from lighter_service.errors import StoreError
from lighter_service.models import TradeLogEntry, TradeStatus
from lighter_service.store import AsyncStore, DocumentStore, TradeJournal
from lighter_service.store.documents import SERVICE_STATUS

from conftest import NOW, FakeClock, make_decision


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store(session_factory, clock):
    return DocumentStore(session_factory, retention_days=30, clock=clock)


def _entry(status=TradeStatus.RECEIVED, created_at=NOW, **kw):
    return TradeLogEntry.for_decision(
        make_decision(**kw), status, trading_state={"daily_trade_count": 0}, created_at=created_at,
    )


class TestDocuments:
    def test_missing_document(self, store):
        assert store.get_document(SERVICE_STATUS, "nope") is None

    def test_set_and_get(self, store):
        store.set_document(SERVICE_STATUS, "svc", {"status": "running", "pid": 1})
        doc = store.get_document(SERVICE_STATUS, "svc")
        assert doc.data == {"status": "running", "pid": 1}
        assert doc.updated_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)

    def test_merge_keeps_other_fields(self, store):
        store.set_document("lighter_data", "account", {"balance": 10, "equity": 12})
        store.set_document("lighter_data", "account", {"balance": 11})
        assert store.get_document("lighter_data", "account").data == {"balance": 11, "equity": 12}

    def test_overwrite_without_merge(self, store):
        store.set_document("lighter_data", "account", {"balance": 10, "equity": 12})
        store.set_document("lighter_data", "account", {"balance": 11}, merge=False)
        assert store.get_document("lighter_data", "account").data == {"balance": 11}

    def test_update_bumps_timestamp(self, store, clock):
        store.set_document("agent_decisions", "RL80", {"action": "BUY"})
        first = store.get_document("agent_decisions", "RL80").updated_at
        clock.now = NOW + timedelta(seconds=5)
        store.set_document("agent_decisions", "RL80", {"action": "SELL"})
        assert store.get_document("agent_decisions", "RL80").updated_at > first

    def test_decimal_values_serialised(self, store):
        store.set_document("lighter_data", "account", {"balance": Decimal("12.5")})
        assert store.get_document("lighter_data", "account").data["balance"] == "12.5"


class TestTradeLog:
    def test_add_and_list_newest_first(self, store):
        store.add_trade_log(_entry(TradeStatus.RECEIVED, timestamp=1))
        store.add_trade_log(_entry(TradeStatus.EXECUTED, timestamp=1))
        rows = store.recent_trade_logs()
        assert [r["status"] for r in rows] == ["executed", "received"]
        assert rows[0]["symbol"] == "ETH"
        assert rows[0]["action"] == "BUY"
        assert rows[0]["decision_ts"] == 1

    def test_filter_by_status(self, store):
        store.add_trade_log(_entry(TradeStatus.RECEIVED))
        store.add_trade_log(_entry(TradeStatus.REJECTED))
        rows = store.recent_trade_logs(status="rejected")
        assert len(rows) == 1

    def test_limit(self, store):
        for ts in range(5):
            store.add_trade_log(_entry(timestamp=ts))
        assert len(store.recent_trade_logs(limit=2)) == 2

    def test_purge_expired(self, store):
        store.add_trade_log(_entry(created_at=NOW - timedelta(days=31)))
        store.add_trade_log(_entry(created_at=NOW - timedelta(days=1)))
        assert store.purge_expired_trade_logs(NOW) == 1
        assert len(store.recent_trade_logs()) == 1


class _BrokenStore:
    def add_trade_log(self, entry):
        raise RuntimeError("connection refused")

    def get_document(self, collection, doc_id):
        time.sleep(0.5)


class TestAsyncStore:
    def test_round_trip_via_threads(self, store):
        async def scenario():
            astore = AsyncStore(store, timeout_s=5)
            await astore.set_document("market_data", "latest", {"ethPrice": 2000.0})
            return await astore.get_document("market_data", "latest")

        assert asyncio.run(scenario()).data == {"ethPrice": 2000.0}

    def test_errors_wrapped(self):
        async def scenario():
            await AsyncStore(_BrokenStore()).add_trade_log(_entry())

        with pytest.raises(StoreError, match="connection refused"):
            asyncio.run(scenario())

    def test_timeout(self):
        async def scenario():
            await AsyncStore(_BrokenStore(), timeout_s=0.05).get_document("a", "b")

        with pytest.raises(StoreError, match="timed out"):
            asyncio.run(scenario())


class TestTradeJournal:
    def test_record(self, store):
        async def scenario():
            return await TradeJournal(AsyncStore(store)).record(_entry())

        assert asyncio.run(scenario()) is True
        assert len(store.recent_trade_logs()) == 1

    def test_failure_swallowed(self):
        async def scenario():
            return await TradeJournal(AsyncStore(_BrokenStore())).record(_entry())

        assert asyncio.run(scenario()) is False
