"""Proxy Watch — Expiry Evaluator.

Classifies how close a record is to the end of its validity window.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from proxywatch.database.models import EndpointRecord, ExpiryState, parse_timestamp, utcnow

EXPIRING_SOON_DAYS = 7


def days_until_expiry(record: EndpointRecord, now: Optional[datetime] = None) -> int:
    """Whole days from now until the record expires, truncated toward zero.

    Args:
        record: The endpoint record.
        now: Current instant; defaults to utcnow().

    Returns:
        Signed day count (negative once a full day has passed).
    """
    now = parse_timestamp(now) if now is not None else utcnow()
    delta = parse_timestamp(record.expiry_date) - now
    return int(delta / timedelta(days=1))


def evaluate_expiry(record: EndpointRecord, now: Optional[datetime] = None) -> ExpiryState:
    """Classify a record as valid, expiring soon or expired.

    Expired means now is strictly after the expiry timestamp. A record
    with 0 to 7 days left is expiring soon, so one expiring later today
    stays "expiring soon" until the instant passes.

    Args:
        record: The endpoint record.
        now: Current instant; defaults to utcnow().

    Returns:
        The ExpiryState.
    """
    now = parse_timestamp(now) if now is not None else utcnow()
    if now > parse_timestamp(record.expiry_date):
        return ExpiryState.EXPIRED
    if 0 <= days_until_expiry(record, now) <= EXPIRING_SOON_DAYS:
        return ExpiryState.EXPIRING_SOON
    return ExpiryState.VALID
