"""Proxy Watch — Main Orchestrator.

Ties the components together (config, database, prober, dispatcher and
batch scheduler) and triggers a batch check of all active records on an
APScheduler interval.

Usage:
    python -m proxywatch.main          # run continuously
    python -m proxywatch.main --once   # run a single check and exit
    python scripts/run.py
"""

from __future__ import annotations

import argparse
import asyncio
import functools
import signal
import time
import traceback
from pathlib import Path
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from proxywatch.config import AppConfig, load_config
from proxywatch.database import queries
from proxywatch.database.db import Database
from proxywatch.database.models import ProbeResult
from proxywatch.monitor.prober import create_checker
from proxywatch.monitor.scheduler import BatchScheduler
from proxywatch.notifier.audit import AttemptLogger
from proxywatch.notifier.dispatcher import NotificationDispatcher
from proxywatch.utils.logger import get_logger, set_console_level

logger = get_logger(__name__)


class ProxyWatch:
    """Main application orchestrator.

    Loads active records from the database and hands them to the
    BatchScheduler, either once or on a fixed interval.

    Attributes:
        config: Full application configuration.
        db: Active database instance.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize with default state. Call setup() before running."""
        self.config = config
        self.db: Optional[Database] = None
        self._http: Optional[httpx.AsyncClient] = None
        self._batch: Optional[BatchScheduler] = None
        self._scheduler: Optional[AsyncIOScheduler] = None

        self._running = False
        self._cycle_count = 0
        self._cycle_lock = asyncio.Lock()

    async def setup(self) -> None:
        """Load config, open the database and build the pipeline."""
        if self.config is None:
            logger.info("═══ Loading configuration ═══")
            self.config = load_config()
        set_console_level(self.config.log_level)

        logger.info("═══ Initializing database ═══")
        self.db = Database(self.config.database_path)
        await self.db.initialize()

        logger.info("═══ Initializing components ═══")
        monitor = self.config.monitor
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(monitor.request_timeout_ms / 1000))
        dispatcher = NotificationDispatcher(monitor, AttemptLogger(self.db), client=self._http)
        self._batch = BatchScheduler(
            monitor,
            create_checker(monitor, client=self._http),
            dispatcher,
            status_updater=functools.partial(queries.update_record_status, self.db),
        )
        logger.info(
            "Probe backend: %s | groups of %d | relay: %s",
            monitor.probe_backend, monitor.group_size,
            "on" if monitor.relay_service_url else "off",
        )

    async def run_check_cycle(self) -> list[ProbeResult]:
        """Check every active record once.

        Skipped when the previous cycle is still running.

        Returns:
            The batch's probe results (empty when skipped).
        """
        if self._cycle_lock.locked():
            logger.warning("Previous check cycle still running, skipping")
            return []

        async with self._cycle_lock:
            self._cycle_count += 1
            cycle_start = time.monotonic()
            logger.info("═══ Check Cycle #%d ═══", self._cycle_count)

            try:
                records = await queries.get_active_records(self.db)
                results = await self._batch.run(records)
            except Exception as e:
                logger.error("Check cycle error: %s", e)
                logger.error(traceback.format_exc())
                return []

            logger.info(
                "Cycle #%d complete: %d records in %.1fs",
                self._cycle_count, len(results), time.monotonic() - cycle_start,
            )
            return results

    async def start(self) -> None:
        """Run continuously until stopped.

        1. Setup components
        2. Schedule the check cycle on an interval
        3. Run the first cycle immediately (if configured)
        4. Keep alive until a signal clears _running
        """
        self._running = True
        try:
            await self.setup()

            interval = self.config.schedule.check_interval_minutes
            self._scheduler = AsyncIOScheduler()
            self._scheduler.add_job(
                self.run_check_cycle,
                IntervalTrigger(minutes=interval),
                id="check_cycle",
                max_instances=1,
                misfire_grace_time=60,
                name=f"Check cycle (every {interval}m)",
            )
            self._scheduler.start()
            logger.info("Scheduler started: check every %d minutes", interval)

            if self.config.schedule.run_on_start:
                await self.run_check_cycle()

            while self._running:
                await asyncio.sleep(1)

        except Exception as e:
            logger.error("Fatal error: %s", e)
            logger.error(traceback.format_exc())
        finally:
            await self.shutdown()

    async def run_once(self) -> list[ProbeResult]:
        """Setup, run one check cycle and shut down."""
        try:
            await self.setup()
            return await self.run_check_cycle()
        finally:
            await self.shutdown()

    def stop(self) -> None:
        """Ask the keep-alive loop to exit."""
        self._running = False

    async def shutdown(self) -> None:
        """Stop the scheduler and close connections."""
        logger.info("═══ Shutting down ═══")
        self._running = False

        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        if self._http is not None:
            await self._http.aclose()
            self._http = None

        if self.db is not None:
            await self.db.close()
            self.db = None

        logger.info("Shutdown complete")

    @property
    def cycle_count(self) -> int:
        """Total check cycles started."""
        return self._cycle_count


def main(argv: Optional[list[str]] = None) -> None:
    """Application entry point."""
    parser = argparse.ArgumentParser(description="Proxy reachability and expiry monitor")
    parser.add_argument("--once", action="store_true", help="run one check cycle and exit")
    args = parser.parse_args(argv)

    Path("data").mkdir(exist_ok=True)

    app = ProxyWatch()

    if args.once:
        asyncio.run(app.run_once())
        return

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()


if __name__ == "__main__":
    main()
