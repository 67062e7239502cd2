"""Proxy Watch — Webhook Attempt Logger.

Writes the single audit row of a dispatch. A failed write is logged and
swallowed so it can never change a dispatch's reported outcome.
"""

from __future__ import annotations

from proxywatch.database import queries
from proxywatch.database.db import Database
from proxywatch.database.models import AttemptLogEntry
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)


class AttemptLogger:
    """Append-only writer for the webhook_logs table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def record(self, entry: AttemptLogEntry) -> None:
        """Persist one entry; never raises.

        Args:
            entry: Outcome of a finished dispatch.
        """
        try:
            await queries.insert_attempt_log(self.db, entry)
        except Exception as e:
            logger.error(
                "Failed to log webhook attempt (%s for record %s): %s",
                entry.type, entry.record_id, e,
            )
