"""Proxy Watch — Data Models.

Dataclasses for the tracked proxy endpoints, per-probe results,
notification events and the webhook audit log, plus the string enums
shared between them.

Persisted models include:
  - to_db_dict(): converts to a dict suitable for SQLite insertion
  - from_db_row(row): classmethod to reconstruct from a DB row dict
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional


class RecordStatus(str, Enum):
    """Status column of an endpoint record."""

    ONLINE = "online"
    OFFLINE = "offline"
    CHECKING = "checking"
    UNKNOWN = "unknown"


class ProbeStatus(str, Enum):
    """Outcome of a single probe."""

    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class ExpiryState(str, Enum):
    """Time-to-expiry classification of a record."""

    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class EventKind(str, Enum):
    """Notification event kinds, valued as stored in the audit log."""

    OFFLINE = "ip_offline"
    EXPIRING_SOON = "ip_expiry"
    EXPIRED = "service_expiry"


class AttemptOutcome(str, Enum):
    """Final outcome of one dispatch."""

    SUCCESS = "success"
    FAILED = "failed"


# ═══════════════════════════════════════════════════════════
# Timestamp helpers
# ═══════════════════════════════════════════════════════════


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime.

    Accepts datetimes, dates (midnight UTC) and ISO-8601 strings,
    including a trailing "Z". Naive values are taken as UTC.

    Args:
        value: Raw value from the database or caller.

    Returns:
        Aware datetime, or None for empty values.

    Raises:
        ValueError: If a string cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ═══════════════════════════════════════════════════════════
# Persisted Models
# ═══════════════════════════════════════════════════════════


@dataclass
class EndpointRecord:
    """A tracked proxy endpoint.

    The address is validated by whatever creates the record; it is not
    re-validated here. Only status and last_checked are written by the
    monitor itself.

    Attributes:
        id: Opaque record identifier.
        ip: IPv4 address of the proxy.
        port: Proxy port (1-65535).
        username: Proxy username.
        password: Proxy password.
        expiry_date: When the proxy subscription ends.
        name: Optional display name.
        notes: Optional free-text notes.
        is_active: Whether scheduled checks include this record.
        last_checked: Time of the last probe, if any.
        status: Current RecordStatus value.
        webhook_url: Optional notification target.
    """

    id: str
    ip: str
    port: int
    username: str
    password: str
    expiry_date: datetime
    name: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    last_checked: Optional[datetime] = None
    status: RecordStatus = RecordStatus.UNKNOWN
    webhook_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def endpoint(self) -> str:
        """The "ip:port" form used in logs and messages."""
        return f"{self.ip}:{self.port}"

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for SQLite insertion.

        Returns:
            Dict with column names as keys, timestamps as ISO strings.
        """
        return {
            "id": self.id,
            "ip": self.ip,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "name": self.name,
            "notes": self.notes,
            "expiry_date": _format_timestamp(self.expiry_date),
            "is_active": int(self.is_active),
            "last_checked": _format_timestamp(self.last_checked),
            "status": RecordStatus(self.status).value,
            "webhook_url": self.webhook_url,
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "EndpointRecord":
        """Construct an EndpointRecord from a database row dictionary.

        Args:
            row: Dictionary with column names as keys.

        Returns:
            An EndpointRecord instance.
        """
        return cls(
            id=str(row["id"]),
            ip=row["ip"],
            port=int(row["port"]),
            username=row["username"],
            password=row["password"],
            expiry_date=parse_timestamp(row["expiry_date"]),
            name=row.get("name"),
            notes=row.get("notes"),
            is_active=bool(row.get("is_active", 1)),
            last_checked=parse_timestamp(row.get("last_checked")),
            status=RecordStatus(row.get("status") or RecordStatus.UNKNOWN.value),
            webhook_url=row.get("webhook_url") or None,
            created_at=parse_timestamp(row.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(row.get("updated_at")) or utcnow(),
        )


@dataclass
class AttemptLogEntry:
    """One row of the webhook audit log.

    Attributes:
        type: EventKind value of the dispatched event.
        message: Rendered plain-text message.
        url: Target webhook address.
        status: AttemptOutcome value.
        record_id: Owning endpoint record id.
        timestamp: When the dispatch finished.
    """

    type: EventKind
    message: str
    url: str
    status: AttemptOutcome
    record_id: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for SQLite insertion."""
        return {
            "type": EventKind(self.type).value,
            "message": self.message,
            "url": self.url,
            "status": AttemptOutcome(self.status).value,
            "record_id": self.record_id,
            "timestamp": _format_timestamp(self.timestamp),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "AttemptLogEntry":
        """Construct an AttemptLogEntry from a database row dictionary."""
        return cls(
            type=EventKind(row["type"]),
            message=row["message"],
            url=row["url"],
            status=AttemptOutcome(row["status"]),
            record_id=row["record_id"],
            timestamp=parse_timestamp(row["timestamp"]),
        )


# ═══════════════════════════════════════════════════════════
# Pipeline Models (not persisted)
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ProbeResult:
    """Result of probing one endpoint.

    Attributes:
        ip: Probed address.
        port: Probed port.
        status: ProbeStatus outcome.
        response_time: Round trip in whole milliseconds (online only).
        error: Error description (offline/error only).
    """

    ip: str
    port: int
    status: ProbeStatus
    response_time: Optional[int] = None
    error: Optional[str] = None

    @property
    def record_status(self) -> RecordStatus:
        """Status to store on the record. "error" has no record status."""
        if self.status == ProbeStatus.ONLINE:
            return RecordStatus.ONLINE
        if self.status == ProbeStatus.OFFLINE:
            return RecordStatus.OFFLINE
        return RecordStatus.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by the /check-ip endpoint."""
        payload: dict[str, Any] = {"status": ProbeStatus(self.status).value}
        if self.response_time is not None:
            payload["response_time"] = self.response_time
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class NotificationEvent:
    """An alert about one record, consumed immediately by the dispatcher."""

    kind: EventKind
    record: EndpointRecord
    message: str
