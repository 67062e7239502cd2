from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from proxywatch.database.models import ExpiryState
from proxywatch.monitor.expiry import days_until_expiry, evaluate_expiry

from conftest import NOW


@pytest.mark.parametrize(
    ("expiry", "days", "state"),
    [
        (NOW + timedelta(hours=7), 0, ExpiryState.EXPIRING_SOON),
        (NOW, 0, ExpiryState.EXPIRING_SOON),
        (NOW - timedelta(days=1), -1, ExpiryState.EXPIRED),
        (NOW + timedelta(days=7, hours=1), 7, ExpiryState.EXPIRING_SOON),
        (NOW + timedelta(days=8), 8, ExpiryState.VALID),
        (NOW + timedelta(days=365), 365, ExpiryState.VALID),
    ],
)
def test_expiry_boundaries(make_record, expiry, days, state) -> None:
    record = make_record(expiry_date=expiry)
    assert days_until_expiry(record, NOW) == days
    assert evaluate_expiry(record, NOW) == state


def test_expired_once_instant_passes_even_with_zero_days(make_record) -> None:
    record = make_record(expiry_date=NOW - timedelta(seconds=1))
    assert days_until_expiry(record, NOW) == 0
    assert evaluate_expiry(record, NOW) == ExpiryState.EXPIRED


def test_date_only_expiry_is_midnight_utc(make_record) -> None:
    record = make_record(expiry_date=date(2026, 3, 10))
    assert evaluate_expiry(record, NOW) == ExpiryState.EXPIRED

    record = make_record(expiry_date="2026-03-11")
    assert evaluate_expiry(record, NOW) == ExpiryState.EXPIRING_SOON


def test_naive_datetimes_are_utc(make_record) -> None:
    record = make_record(expiry_date=datetime(2026, 3, 30, 12, 0))
    assert days_until_expiry(record, NOW) == 20
    assert evaluate_expiry(record, NOW.replace(tzinfo=None)) == ExpiryState.VALID


def test_iso_string_with_z_suffix(make_record) -> None:
    record = make_record(expiry_date="2026-03-12T00:00:00Z")
    assert days_until_expiry(record, NOW) == 1
    assert evaluate_expiry(record, NOW) == ExpiryState.EXPIRING_SOON


def test_defaults_to_current_time(make_record) -> None:
    record = make_record(expiry_date=datetime.now(timezone.utc) + timedelta(days=30))
    assert evaluate_expiry(record) == ExpiryState.VALID
