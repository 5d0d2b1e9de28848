"""
Hashring Watcher Scheduler

Triggers a reconciliation run on a fixed interval until stopped. Stopping
never interrupts a run that already started.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from hashring_watcher.config import WatcherConfig
from hashring_watcher.discovery import build_file_list
from hashring_watcher.run import RunReport, run_reconciliation


class SchedulerState(str, Enum):
    """Scheduler lifecycle."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Fixed-interval driver. Late ticks are dropped, not queued."""

    def __init__(
        self,
        interval: float,
        tick: Callable[[], Awaitable[Any]],
        logger: Optional[logging.Logger] = None,
    ):
        self.interval = interval
        self.tick = tick
        self.logger = logger or logging.getLogger(__name__)
        self.state = SchedulerState.IDLE
        self.ticks = 0
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        """Request a stop. Safe to call from a signal handler."""
        if self.state == SchedulerState.IDLE:
            self.state = SchedulerState.STOPPED
        self._stop_event.set()

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds, returning True if stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self) -> None:
        """Tick until stopped."""
        if self.state != SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot start from state {self.state.value}")

        self.state = SchedulerState.RUNNING
        self.logger.info("Scheduler Started (run every %g seconds)", self.interval)

        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval

        while not self._stop_event.is_set():
            delay = next_tick - loop.time()
            if delay > 0 and await self._wait_for_stop(delay):
                break

            self.ticks += 1
            self.logger.info("Tick at %s", datetime.now(timezone.utc).isoformat())
            try:
                await self.tick()
            except Exception as e:
                self.logger.error("Scheduler error: %s", e, exc_info=True)

            next_tick += self.interval
            now = loop.time()
            if next_tick <= now:
                skipped = int((now - next_tick) // self.interval) + 1
                self.logger.warning("Run overran the interval, skipping %d tick(s)", skipped)
                next_tick += skipped * self.interval

        self.state = SchedulerState.STOPPED
        self.logger.info("Scheduler Stopped...")


def create_scheduler(
    config: WatcherConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[logging.Logger] = None,
    on_report: Optional[Callable[[RunReport], None]] = None,
) -> Scheduler:
    """Scheduler that re-discovers files and runs a reconciliation each tick."""

    async def tick() -> RunReport:
        files = build_file_list(config, logger)
        report = await run_reconciliation(files, config, transport=transport, logger=logger)
        if on_report is not None:
            on_report(report)
        return report

    return Scheduler(config.interval, tick, logger=logger)
