"""Proxy Watch — Batch Scheduler.

Runs one check over a batch of endpoint records:
  1. Expiry sweep: every record is classified up front, and expiring or
     expired records with a webhook get an alert before any probe runs.
  2. Probing: records are split into consecutive groups of group_size.
     Each group is probed concurrently, and the scheduler pauses
     inter_group_delay_ms before starting the next group.

Each record is probed at most once per run, with no retry. Nothing that
happens to one record aborts the batch; the run always returns one
ProbeResult per input record.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from proxywatch.config import MonitorConfig
from proxywatch.database.models import (
    EndpointRecord,
    EventKind,
    ExpiryState,
    NotificationEvent,
    ProbeResult,
    ProbeStatus,
    RecordStatus,
    parse_timestamp,
    utcnow,
)
from proxywatch.monitor.expiry import days_until_expiry, evaluate_expiry
from proxywatch.monitor.prober import ProxyReachabilityChecker
from proxywatch.notifier.dispatcher import NotificationDispatcher
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

StatusUpdater = Callable[[str, RecordStatus, datetime], Awaitable[None]]


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive groups of at most size elements.

    Raises:
        ValueError: If size is below 1.
    """
    if size < 1:
        raise ValueError(f"Group size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def build_expiry_event(
    record: EndpointRecord, state: ExpiryState, now: Optional[datetime] = None,
) -> Optional[NotificationEvent]:
    """Build the alert for a non-valid expiry state, None when valid."""
    if state == ExpiryState.EXPIRED:
        expired_on = parse_timestamp(record.expiry_date).strftime("%Y-%m-%d")
        return NotificationEvent(
            kind=EventKind.EXPIRED,
            record=record,
            message=f"Proxy {record.endpoint} expired on {expired_on}",
        )
    if state == ExpiryState.EXPIRING_SOON:
        days = days_until_expiry(record, now)
        when = "today" if days == 0 else f"in {days} day{'s' if days != 1 else ''}"
        return NotificationEvent(
            kind=EventKind.EXPIRING_SOON,
            record=record,
            message=f"Proxy {record.endpoint} expires {when}",
        )
    return None


def build_offline_event(record: EndpointRecord, result: ProbeResult) -> NotificationEvent:
    """Build the alert for a failed probe."""
    reason = result.error or "no response"
    return NotificationEvent(
        kind=EventKind.OFFLINE,
        record=record,
        message=f"Proxy {record.endpoint} failed its connectivity check: {reason}",
    )


class BatchScheduler:
    """Throttled probe fan-out with expiry and offline alerts.

    Attributes:
        config: MonitorConfig with group size, delay and alert policy.
        checker: Probe backend.
        dispatcher: Webhook dispatcher for alerts.
    """

    def __init__(
        self,
        config: MonitorConfig,
        checker: ProxyReachabilityChecker,
        dispatcher: NotificationDispatcher,
        status_updater: Optional[StatusUpdater] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Monitor configuration.
            checker: ProxyReachabilityChecker implementation.
            dispatcher: NotificationDispatcher for alerts.
            status_updater: Writes (record_id, status, checked_at) to the
                record store; status is not persisted when None.
        """
        self.config = config
        self.checker = checker
        self.dispatcher = dispatcher
        self._status_updater = status_updater

    async def run(self, records: Iterable[EndpointRecord]) -> list[ProbeResult]:
        """Check a batch of records.

        Args:
            records: Records to check, in order.

        Returns:
            One ProbeResult per record, in group order.

        Raises:
            TypeError: If records is not iterable.
        """
        records = list(records)
        start = time.monotonic()
        if not records:
            logger.info("Batch check: no records")
            return []

        # ── Phase 1: expiry sweep ────────────────────────
        for record in records:
            await self._check_expiry(record)

        # ── Phase 2: grouped probing ─────────────────────
        groups = partition(records, self.config.group_size)
        logger.info(
            "Batch check: %d records in %d groups of up to %d",
            len(records), len(groups), self.config.group_size,
        )

        results: list[ProbeResult] = []
        for index, group in enumerate(groups):
            if index > 0 and self.config.inter_group_delay_ms > 0:
                await asyncio.sleep(self.config.inter_group_delay_ms / 1000)
            results.extend(await asyncio.gather(*(self._probe(r) for r in group)))

        self._log_summary(results, time.monotonic() - start)
        return results

    async def check_one(self, record: EndpointRecord) -> ProbeResult:
        """Run the full pipeline for a single record."""
        await self._check_expiry(record)
        return await self._probe(record)

    async def _check_expiry(self, record: EndpointRecord) -> None:
        try:
            now = utcnow()
            state = evaluate_expiry(record, now)
            event = build_expiry_event(record, state, now)
        except Exception as e:
            logger.error("Expiry evaluation failed for %s: %s", record.id, e)
            return

        if event is None:
            return
        logger.info("%s: %s", record.endpoint, event.message)
        await self._notify(record, event)

    async def _probe(self, record: EndpointRecord) -> ProbeResult:
        """Probe one record, persist its status and alert if offline."""
        await self._update_status(record, RecordStatus.CHECKING)

        try:
            result = await self.checker.check(
                record.ip, record.port, record.username, record.password,
            )
        except Exception as e:
            logger.error("Checker raised for %s: %s", record.endpoint, e)
            result = ProbeResult(
                ip=record.ip, port=record.port, status=ProbeStatus.ERROR, error=str(e),
            )

        await self._update_status(record, result.record_status)

        if result.status == ProbeStatus.OFFLINE:
            await self._notify(record, build_offline_event(record, result))
        elif result.status == ProbeStatus.ERROR:
            if self.config.alert_on_error:
                await self._notify(record, build_offline_event(record, result))
            else:
                logger.warning(
                    "Probe error for %s, not alerting: %s", record.endpoint, result.error,
                )
        return result

    async def _notify(self, record: EndpointRecord, event: NotificationEvent) -> None:
        if not record.webhook_url:
            logger.debug("No webhook for %s, %s alert not sent", record.id, event.kind.value)
            return
        try:
            await self.dispatcher.dispatch(record.webhook_url, event)
        except Exception as e:
            logger.error("Dispatch raised for %s: %s", record.id, e)

    async def _update_status(self, record: EndpointRecord, status: RecordStatus) -> None:
        if self._status_updater is None:
            return
        try:
            await self._status_updater(record.id, status, utcnow())
        except Exception as e:
            logger.error("Status update failed for %s: %s", record.id, e)

    @staticmethod
    def _log_summary(results: list[ProbeResult], elapsed: float) -> None:
        counts = {status: 0 for status in ProbeStatus}
        for result in results:
            counts[result.status] += 1
        logger.info(
            "Batch check complete: %d online | %d offline | %d error | %.1fs",
            counts[ProbeStatus.ONLINE], counts[ProbeStatus.OFFLINE],
            counts[ProbeStatus.ERROR], elapsed,
        )
