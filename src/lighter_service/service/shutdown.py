"""Graceful shutdown — tracks in-flight order submissions.

Once shutdown starts no new submission may begin, and the service waits
(bounded) for the ones already sent to the exchange before releasing
resources.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog

from lighter_service.errors import ServiceError

log = structlog.get_logger("shutdown")


class ShutdownInProgress(ServiceError):
    """Raised when an order would start after shutdown began."""


class ShutdownManager:
    def __init__(self) -> None:
        self._shutting_down = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def in_flight_count(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def order_in_flight(self) -> AsyncIterator[None]:
        """Wrap one order submission."""
        if self._shutting_down:
            raise ShutdownInProgress("cannot start new orders - shutdown in progress")
        self._in_flight += 1
        self._idle.clear()
        log.debug("order_in_flight", count=self._in_flight)
        try:
            yield
        finally:
            self._in_flight = max(0, self._in_flight - 1)
            if self._in_flight == 0:
                self._idle.set()

    def begin(self) -> None:
        """Refuse new orders from now on."""
        if not self._shutting_down:
            self._shutting_down = True
            log.info("shutdown_requested", in_flight=self._in_flight)

    async def prepare_shutdown(self, timeout: float = 60.0) -> dict:
        """Stop new orders and wait up to *timeout* for in-flight ones.

        Returns a status dict: ready, in_flight_count, waited_seconds.
        """
        self.begin()
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("shutdown_timeout", timeout=timeout, in_flight=self._in_flight)
            return {
                "ready": False,
                "in_flight_count": self._in_flight,
                "waited_seconds": timeout,
            }
        waited = time.monotonic() - started
        log.info("shutdown_ready", waited_seconds=round(waited, 3))
        return {"ready": True, "in_flight_count": 0, "waited_seconds": waited}

    def get_status(self) -> dict:
        return {"shutting_down": self._shutting_down, "in_flight_count": self._in_flight}
