"""Proxy Watch — SQLite Connection Manager.

Provides async SQLite database connection management using aiosqlite.
Handles schema creation for the endpoint records and the webhook audit
log, and the connection lifecycle.
"""

from __future__ import annotations

import aiosqlite
from pathlib import Path

from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Endpoint Records ═══
-- Written by the record management layer; the monitor only updates
-- status and last_checked.
CREATE TABLE IF NOT EXISTS ip_records (
    id           TEXT    PRIMARY KEY,
    ip           TEXT    NOT NULL,
    port         INTEGER NOT NULL DEFAULT 1080,
    username     TEXT    NOT NULL,
    password     TEXT    NOT NULL,
    name         TEXT,
    notes        TEXT,
    expiry_date  TEXT    NOT NULL,
    is_active    INTEGER DEFAULT 1,
    last_checked TEXT,
    status       TEXT    DEFAULT 'unknown',
    webhook_url  TEXT,
    created_at   TEXT    DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
    updated_at   TEXT    DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
);

-- ═══ Webhook Audit Log ═══
-- Append-only, one row per dispatch.
CREATE TABLE IF NOT EXISTS webhook_logs (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    type       TEXT    NOT NULL,
    message    TEXT    NOT NULL,
    url        TEXT    NOT NULL,
    status     TEXT    NOT NULL,
    record_id  TEXT    NOT NULL,
    timestamp  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_records_active     ON ip_records(is_active);
CREATE INDEX IF NOT EXISTS idx_records_created    ON ip_records(created_at);
CREATE INDEX IF NOT EXISTS idx_logs_timestamp     ON webhook_logs(timestamp);
CREATE INDEX IF NOT EXISTS idx_logs_record_id     ON webhook_logs(record_id);
"""


class Database:
    """Async SQLite database connection manager.

    Keeps one persistent connection with WAL mode enabled and a
    dict-like row factory.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Path to the SQLite file. Parent directories are
                created on initialize().
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection, set pragmas and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to database: %s", self.db_path)
        self._connection = await aiosqlite.connect(str(self.db_path))

        await self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()

        logger.info("Database initialized, all tables ready")

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active connection, initializing if necessary."""
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def close(self) -> None:
        """Close the connection. Safe to call when already closed."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
