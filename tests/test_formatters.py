from __future__ import annotations

from datetime import datetime, timezone

import pytest

from proxywatch.database.models import EventKind, NotificationEvent
from proxywatch.notifier.formatters import (
    NAME_PLACEHOLDER,
    NOTES_PLACEHOLDER,
    render,
    render_card,
    render_plain,
    status_label,
)

from conftest import NOW


def field_row(card):
    """Return the three field cell contents of a card."""
    row = next(e for e in card["elements"] if e["tag"] == "column_set")
    return [
        column["elements"][0]["columns"][0]["elements"][0]["content"]
        for column in row["columns"]
    ]


def details_text(card):
    divs = [e for e in card["elements"] if e["tag"] == "div"]
    return divs[1]["text"]["content"]


@pytest.mark.parametrize(
    ("kind", "label", "color"),
    [
        (EventKind.OFFLINE, "Offline", "red"),
        (EventKind.EXPIRING_SOON, "Expiring Soon", "orange"),
        (EventKind.EXPIRED, "Expired", "red"),
    ],
)
def test_card_carries_address_status_and_expiry(make_record, kind, label, color):
    record = make_record(
        ip="198.51.100.7",
        port=3128,
        expiry_date=datetime(2026, 4, 1, tzinfo=timezone.utc),
    )
    card = render_card(NotificationEvent(kind=kind, record=record, message="m"), NOW)

    address, status, expiry = field_row(card)
    ip, port = address.split("\n")[1].split(":")
    assert (ip, int(port)) == ("198.51.100.7", 3128)
    assert label in status
    assert status_label(kind) == label
    assert expiry.endswith("2026-04-01")
    assert card["header"]["template"] == color
    assert card["config"] == {"wide_screen_mode": True}
    assert "198.51.100.7:3128" in card["elements"][0]["text"]["content"]


def test_missing_name_and_notes_use_placeholders(make_record):
    record = make_record(name=None, notes="")
    event = NotificationEvent(kind=EventKind.OFFLINE, record=record, message="down")

    details = details_text(render_card(event, NOW))
    plain = render_plain(event, NOW)["text"]

    assert f"**Name:** {NAME_PLACEHOLDER}" in details
    assert f"**Notes:** {NOTES_PLACEHOLDER}" in details
    assert f"Name: {NAME_PLACEHOLDER}" in plain
    assert f"Notes: {NOTES_PLACEHOLDER}" in plain


def test_details_include_username_and_probe_time(make_record):
    record = make_record(username="alice", name="edge-1", notes="rack 4")
    event = NotificationEvent(kind=EventKind.OFFLINE, record=record, message="down")

    details = details_text(render_card(event, NOW))

    assert "**Username:** alice" in details
    assert "edge-1" in details
    assert "rack 4" in details
    assert "2026-03-10 12:00:00 UTC" in details


def test_plain_message_has_the_same_facts(make_record):
    record = make_record(
        ip="203.0.113.9",
        port=1080,
        expiry_date="2026-03-15",
        name="edge-2",
    )
    event = NotificationEvent(
        kind=EventKind.EXPIRING_SOON, record=record, message="Proxy 203.0.113.9:1080 expires in 4 days",
    )

    text = render_plain(event, NOW)["text"]
    lines = text.split("\n")

    assert lines[0] == "⏰ Proxy Expiring Soon"
    assert "Proxy 203.0.113.9:1080 expires in 4 days" in lines
    assert "Address: 203.0.113.9:1080" in lines
    assert "Status: Expiring Soon" in lines
    assert "Expiry Date: 2026-03-15" in lines
    assert "Name: edge-2" in lines
    assert "Checked at: 2026-03-10 12:00:00 UTC" in lines


def test_render_returns_both_shapes(make_record):
    event = NotificationEvent(kind=EventKind.EXPIRED, record=make_record(), message="gone")

    rendered = render(event, NOW)

    assert rendered.card["header"]["title"]["content"] == "❌ Proxy Expired"
    assert set(rendered.plain) == {"text"}
    assert rendered.text == rendered.plain["text"]
    assert "gone" in rendered.text
