"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lighter_service.db.base import Base
import lighter_service.db.tables  # noqa: F401 — register tables on Base.metadata
from lighter_service.errors import ConfigurationError
from lighter_service.models import AccountSnapshot, Decision, GatewayResult, PriceQuote

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    """In-memory SQLite session factory with all tables created.

    Patches JSONB→JSON and BigInteger→Integer for SQLite compatibility.
    StaticPool shares the one connection with worker threads.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite doesn't support schemas, JSONB, or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


# ── Helpers ───────────────────────────────────────────────────


def make_decision(
    action: str = "BUY",
    symbol: str = "ETH",
    confidence: float = 0.9,
    timestamp: int = 1_700_000_000_000,
    **extra,
) -> Decision:
    return Decision.model_validate({
        "action": action,
        "symbol": symbol,
        "confidence": confidence,
        "timestamp": timestamp,
        **extra,
    })


def make_quote(symbol: str = "ETH", price: str = "2000", change: float | None = 1.5) -> PriceQuote:
    return PriceQuote(
        symbol=symbol, price=Decimal(price), ts=NOW, source="test", change_24h_pct=change,
    )


class FakeClock:
    """Settable clock for components that take ``clock=``."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeFeed:
    """MarketDataFeed returning fixed prices; an Exception value is raised."""

    def __init__(self, prices: dict | None = None, account: AccountSnapshot | None = None):
        self.prices = prices or {}
        self.account = account
        self.price_calls = 0

    async def get_price(self, symbol):
        self.price_calls += 1
        value = self.prices.get(symbol)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return make_quote(symbol, str(value))

    async def get_account_snapshot(self):
        return self.account


class FakeGateway:
    """OrderGateway recording submissions; ``outcome`` may be a result or an exception."""

    def __init__(self, outcome=None, delay: float = 0.0):
        self.outcome = outcome if outcome is not None else GatewayResult(success=True, order_id="ord-1")
        self.delay = delay
        self.submitted: list[tuple[dict, str]] = []

    async def submit(self, payload, signature):
        self.submitted.append((payload, signature))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FakeSigner:
    def __init__(self, configured: bool = True):
        self.configured = configured
        self.address = "0xabc" if configured else None

    def sign_payload(self, payload):
        if not self.configured:
            raise ConfigurationError("exchange credentials not configured")
        return "0xsig"


class MemoryJournal:
    """TradeJournal stand-in that keeps entries in a list."""

    def __init__(self, fail: bool = False):
        self.entries = []
        self.fail = fail

    async def record(self, entry):
        if self.fail:
            return False
        self.entries.append(entry)
        return True

    @property
    def statuses(self):
        return [e.status.value for e in self.entries]
