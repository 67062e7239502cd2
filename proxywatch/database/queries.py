"""Proxy Watch — Database Query Operations.

All async database read/write operations. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for SQL)
  - Handles connection via the Database instance
  - Commits after writes
  - Logs operations at DEBUG level
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from proxywatch.database.db import Database
from proxywatch.database.models import (
    AttemptLogEntry,
    EndpointRecord,
    RecordStatus,
    utcnow,
)
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an aiosqlite Row to a plain dictionary."""
    return dict(row)


# ═══════════════════════════════════════════════════════════
# Endpoint Record Operations
# ═══════════════════════════════════════════════════════════


async def insert_record(db: Database, record: EndpointRecord) -> None:
    """Insert or replace an endpoint record.

    Args:
        db: Active database instance.
        record: The record to store.
    """
    conn = await db.get_connection()
    d = record.to_db_dict()
    await conn.execute(
        """
        INSERT OR REPLACE INTO ip_records (
            id, ip, port, username, password, name, notes, expiry_date,
            is_active, last_checked, status, webhook_url, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            d["id"], d["ip"], d["port"], d["username"], d["password"],
            d["name"], d["notes"], d["expiry_date"], d["is_active"],
            d["last_checked"], d["status"], d["webhook_url"],
            d["created_at"], d["updated_at"],
        ),
    )
    await conn.commit()
    logger.debug("Inserted record %s (%s)", record.id, record.endpoint)


async def get_record(db: Database, record_id: str) -> Optional[EndpointRecord]:
    """Retrieve a single record by id.

    Returns:
        The EndpointRecord, or None if not found.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM ip_records WHERE id = ?",
        (record_id,),
    )
    row = await cursor.fetchone()
    logger.debug("get_record(%s) → %s", record_id, "found" if row else "not found")
    if row is None:
        return None
    return EndpointRecord.from_db_row(_row_to_dict(row))


async def get_active_records(db: Database) -> list[EndpointRecord]:
    """Return all active records, newest first.

    Args:
        db: Active database instance.

    Returns:
        List of EndpointRecord instances with is_active set.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM ip_records WHERE is_active = 1 ORDER BY created_at DESC"
    )
    rows = await cursor.fetchall()
    logger.debug("get_active_records → %d rows", len(rows))
    return [EndpointRecord.from_db_row(_row_to_dict(r)) for r in rows]


async def update_record_status(
    db: Database,
    record_id: str,
    status: RecordStatus,
    checked_at: Optional[datetime] = None,
) -> None:
    """Update only the status and last_checked columns of a record.

    Args:
        db: Active database instance.
        record_id: Record to update.
        status: New RecordStatus.
        checked_at: Probe time; defaults to now.
    """
    checked_at = checked_at or utcnow()
    conn = await db.get_connection()
    await conn.execute(
        "UPDATE ip_records SET status = ?, last_checked = ? WHERE id = ?",
        (RecordStatus(status).value, checked_at.isoformat(), record_id),
    )
    await conn.commit()
    logger.debug("Updated record %s status → %s", record_id, RecordStatus(status).value)


# ═══════════════════════════════════════════════════════════
# Webhook Audit Log Operations
# ═══════════════════════════════════════════════════════════


async def insert_attempt_log(db: Database, entry: AttemptLogEntry) -> None:
    """Append one row to the webhook audit log.

    Args:
        db: Active database instance.
        entry: The dispatch outcome to record.
    """
    conn = await db.get_connection()
    d = entry.to_db_dict()
    await conn.execute(
        """
        INSERT INTO webhook_logs (type, message, url, status, record_id, timestamp)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (d["type"], d["message"], d["url"], d["status"], d["record_id"], d["timestamp"]),
    )
    await conn.commit()
    logger.debug("Logged %s webhook attempt for %s: %s", d["type"], d["record_id"], d["status"])


async def get_recent_attempt_logs(db: Database, limit: int = 50) -> list[AttemptLogEntry]:
    """Return the most recent audit entries, newest first.

    Args:
        db: Active database instance.
        limit: Maximum number of entries.

    Returns:
        List of AttemptLogEntry instances.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM webhook_logs ORDER BY timestamp DESC, id DESC LIMIT ?",
        (limit,),
    )
    rows = await cursor.fetchall()
    return [AttemptLogEntry.from_db_row(_row_to_dict(r)) for r in rows]
