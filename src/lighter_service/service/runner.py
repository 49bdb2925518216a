"""Service runner — wires the components together and owns the process lifecycle."""

from __future__ import annotations

import argparse
import asyncio
import signal

import structlog

from lighter_service.api.app import create_app
from lighter_service.api.runner import bind_socket, build_server
from lighter_service.config.loader import load_config
from lighter_service.config.schema import AppConfig
from lighter_service.db.engine import get_engine, get_session_factory, init_engine
from lighter_service.exchange.lighter import LighterClient
from lighter_service.exchange.public import PublicMarketClient
from lighter_service.exchange.signer import LighterSigner
from lighter_service.execution.executor import TradeExecutor
from lighter_service.execution.processor import DecisionProcessor
from lighter_service.execution.safety import SafetyPolicy
from lighter_service.execution.slot import LatestDecisionSlot
from lighter_service.logging.setup import setup_logging
from lighter_service.market.cache import MarketCache
from lighter_service.models.state import TradingState
from lighter_service.service.scheduler import ScheduleRunner
from lighter_service.service.shutdown import ShutdownManager
from lighter_service.store.aio import AsyncStore, TradeJournal
from lighter_service.store.decisions import StoreDecisionSource
from lighter_service.store.documents import DocumentStore

log = structlog.get_logger("service")


async def pump_decisions(source: StoreDecisionSource, slot: LatestDecisionSlot, retry_s: float) -> None:
    """Feed the slot from the decision subscription, re-subscribing if it fails."""
    while True:
        try:
            async for decision in source.subscribe():
                slot.put(decision)
        except Exception:
            log.exception("decision_subscription_failed", retry_in=retry_s)
        await asyncio.sleep(retry_s)


class LighterService:
    def __init__(self, config: AppConfig) -> None:
        self.config = config
        sched = config.schedule

        init_engine(config.database.url)
        self.store = AsyncStore(
            DocumentStore(
                get_session_factory(),
                retention_days=config.trading.trade_log_retention_days,
            ),
            timeout_s=sched.io_timeout_s,
        )

        key = config.lighter.api_key_private_key
        self.signer = LighterSigner(key.get_secret_value() if key else None)
        if not self.signer.configured:
            log.warning("credentials_not_configured", error=self.signer.error)

        self.lighter = LighterClient(config.lighter, self.signer, timeout_s=sched.io_timeout_s)
        self.public = PublicMarketClient(config.market_data, timeout_s=sched.io_timeout_s)
        self.market = MarketCache(staleness_threshold_s=sched.market_data_interval_s * 2)
        self.state = TradingState()
        self.shutdown = ShutdownManager()
        self.slot = LatestDecisionSlot()

        self.executor = TradeExecutor(
            config.trading,
            feed=self.lighter,
            gateway=self.lighter,
            signer=self.signer,
            markets=config.lighter.markets,
            account_index=config.lighter.account_index,
            api_key_index=config.lighter.api_key_index,
            io_timeout_s=sched.io_timeout_s,
        )
        self.processor = DecisionProcessor(
            config.trading,
            self.state,
            SafetyPolicy(config.trading, credentials_configured=lambda: self.signer.configured),
            self.executor,
            TradeJournal(self.store),
            self.market,
            shutdown=self.shutdown,
        )
        self.source = StoreDecisionSource(
            self.store,
            strategy=config.trading.decision_strategy,
            poll_interval_s=sched.decision_poll_interval_s,
        )
        self.scheduler = ScheduleRunner(
            config,
            self.state,
            self.market,
            self.store,
            self.lighter,
            public=self.public,
            stream=self.lighter if self.signer.configured else None,
            status_extra=self._status_extra,
        )
        self._stop = asyncio.Event()

    def _status_extra(self) -> dict:
        return {
            "is_executing": self.processor.is_executing,
            "credentials_configured": self.signer.configured,
            "signer_address": self.signer.address,
            "decisions_superseded": self.slot.dropped,
            "in_flight_orders": self.shutdown.in_flight_count,
        }

    def request_stop(self) -> None:
        if not self._stop.is_set():
            log.info("stop_requested")
            self._stop.set()

    # ── Decision pipeline ─────────────────────────────────────

    async def _consume_decisions(self) -> None:
        while True:
            decision = await self.slot.get()
            try:
                await self.processor.process(decision)
            except Exception:
                log.exception("decision_processing_failed", decision_ts=decision.timestamp)

    # ── Lifecycle ─────────────────────────────────────────────

    async def run(self) -> None:
        cfg = self.config
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

        self.scheduler.reset_daily()

        server = None
        server_task = None
        if cfg.api.enabled:
            try:
                sock = bind_socket(cfg.api.host, cfg.api.port)
            except OSError as exc:
                log.critical("api_bind_failed", host=cfg.api.host, port=cfg.api.port, error=str(exc))
                raise
            app = create_app(
                config=cfg,
                scheduler=self.scheduler,
                processor=self.processor,
                store=self.store,
                shutdown=self.shutdown,
                slot=self.slot,
            )
            server = build_server(app, cfg.api.host, cfg.api.port)
            server_task = asyncio.create_task(server.serve(sockets=[sock]), name="api")

        await self.scheduler.write_status("starting")
        log.info(
            "service_started",
            trading_enabled=cfg.trading.enabled,
            strategy=cfg.trading.decision_strategy,
            allowed_symbols=sorted(cfg.trading.allowed_symbols),
            credentials_configured=self.signer.configured,
            api_port=cfg.api.port if cfg.api.enabled else None,
        )

        self.scheduler.start()
        pump = asyncio.create_task(
            pump_decisions(self.source, self.slot, self.config.schedule.decision_poll_interval_s),
            name="decision_pump",
        )
        consumer = asyncio.create_task(self._consume_decisions(), name="decision_consumer")
        await self.scheduler.write_status("running")

        try:
            await self._stop.wait()
        finally:
            await self._shutdown(pump, consumer, server, server_task)

    async def _shutdown(self, pump, consumer, server, server_task) -> None:
        grace = self.config.schedule.shutdown_grace_s
        self.shutdown.begin()

        pump.cancel()
        await asyncio.gather(pump, return_exceptions=True)
        await self.scheduler.stop()

        status = await self.shutdown.prepare_shutdown(timeout=grace)
        if not await self.processor.wait_idle(timeout=grace):
            log.warning("decision_still_processing", grace_s=grace)
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)

        if server is not None:
            server.should_exit = True
            await asyncio.gather(server_task, return_exceptions=True)

        await self.scheduler.write_status("stopped")
        await self.lighter.close()
        await self.public.close()
        get_engine().dispose()
        log.info("service_stopped", orders_drained=status["ready"],
                 trading_state=self.state.snapshot())


def main(config_path: str | None = None) -> None:
    """Entry point — load config, set up logging, run the service."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    asyncio.run(LighterService(config).run())


def cli() -> None:
    parser = argparse.ArgumentParser(description="Lighter trade execution service")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    args = parser.parse_args()
    main(config_path=args.config)
