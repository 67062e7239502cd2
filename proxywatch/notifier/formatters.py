"""Proxy Watch — Webhook Message Formatters.

Renders a NotificationEvent twice:
  - card:  a Lark/Feishu interactive card (header, field row, details,
           footer note)
  - plain: {"text": ...} with the same facts, one per line

Event kinds only change the wording and colors; the facts are the same.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from proxywatch.database.models import EventKind, NotificationEvent, parse_timestamp, utcnow

# ── Placeholders ─────────────────────────────────────────
NAME_PLACEHOLDER = "Not set"
NOTES_PLACEHOLDER = "None"
FOOTER_NOTE = "💡 Please handle this promptly to keep the service running"


@dataclass(frozen=True)
class _KindStyle:
    headline: str
    summary: str
    status_label: str
    color: str


_STYLES: dict[EventKind, _KindStyle] = {
    EventKind.OFFLINE: _KindStyle(
        headline="🚨 Proxy Connection Alert",
        summary="Proxy **{endpoint}** failed its connectivity check, please investigate!",
        status_label="Offline",
        color="red",
    ),
    EventKind.EXPIRING_SOON: _KindStyle(
        headline="⏰ Proxy Expiring Soon",
        summary="Proxy **{endpoint}** is about to expire, please renew it!",
        status_label="Expiring Soon",
        color="orange",
    ),
    EventKind.EXPIRED: _KindStyle(
        headline="❌ Proxy Expired",
        summary="Proxy **{endpoint}** has expired, action required now!",
        status_label="Expired",
        color="red",
    ),
}


@dataclass(frozen=True)
class RenderedMessage:
    """Both wire shapes of one event."""

    card: dict[str, Any]
    plain: dict[str, str]

    @property
    def text(self) -> str:
        """The plain message text (what the audit log stores)."""
        return self.plain["text"]


def status_label(kind: EventKind) -> str:
    """Human status label shown for an event kind."""
    return _STYLES[EventKind(kind)].status_label


def _format_date(value: Any) -> str:
    return parse_timestamp(value).strftime("%Y-%m-%d")


def _format_time(value: datetime) -> str:
    return parse_timestamp(value).strftime("%Y-%m-%d %H:%M:%S UTC")


def _field_column(content: str) -> dict[str, Any]:
    """One grey labeled cell of the card's field row."""
    return {
        "tag": "column",
        "width": "weighted",
        "weight": 1,
        "vertical_align": "top",
        "elements": [
            {
                "tag": "column_set",
                "flex_mode": "none",
                "background_style": "grey",
                "columns": [
                    {
                        "tag": "column",
                        "width": "weighted",
                        "weight": 1,
                        "vertical_align": "top",
                        "elements": [
                            {"tag": "markdown", "content": content, "text_align": "center"},
                        ],
                    }
                ],
            }
        ],
    }


def render_card(event: NotificationEvent, now: Optional[datetime] = None) -> dict[str, Any]:
    """Build the interactive card for an event.

    Args:
        event: The notification event.
        now: Probe time shown in the details block; defaults to now.

    Returns:
        Card dict with config, elements and header.
    """
    record = event.record
    style = _STYLES[EventKind(event.kind)]
    now = now or utcnow()

    details = "\n".join([
        "**📋 Details:**",
        f"• **Name:** {record.name or NAME_PLACEHOLDER}",
        f"• **Username:** {record.username}",
        f"• **Notes:** {record.notes or NOTES_PLACEHOLDER}",
        f"• **Checked at:** {_format_time(now)}",
    ])

    return {
        "config": {"wide_screen_mode": True},
        "elements": [
            {
                "tag": "div",
                "text": {"content": style.summary.format(endpoint=record.endpoint), "tag": "lark_md"},
            },
            {
                "tag": "column_set",
                "flex_mode": "none",
                "background_style": "default",
                "columns": [
                    _field_column(f"**Address**\n{record.endpoint}"),
                    _field_column(
                        f"**Status**\n<font color='{style.color}'>{style.status_label}</font>"
                    ),
                    _field_column(f"**Expiry Date**\n{_format_date(record.expiry_date)}"),
                ],
            },
            {"tag": "div", "text": {"content": details, "tag": "lark_md"}},
            {
                "tag": "note",
                "elements": [{"tag": "plain_text", "content": FOOTER_NOTE}],
            },
        ],
        "header": {
            "template": style.color,
            "title": {"content": style.headline, "tag": "plain_text"},
        },
    }


def render_plain(event: NotificationEvent, now: Optional[datetime] = None) -> dict[str, str]:
    """Build the plain {"text": ...} message for an event.

    Args:
        event: The notification event.
        now: Probe time; defaults to now.

    Returns:
        Dict with a single "text" key.
    """
    record = event.record
    style = _STYLES[EventKind(event.kind)]
    now = now or utcnow()

    lines = [
        style.headline,
        "",
        event.message,
        "",
        f"Address: {record.endpoint}",
        f"Status: {style.status_label}",
        f"Expiry Date: {_format_date(record.expiry_date)}",
        f"Name: {record.name or NAME_PLACEHOLDER}",
        f"Username: {record.username}",
        f"Notes: {record.notes or NOTES_PLACEHOLDER}",
        f"Checked at: {_format_time(now)}",
    ]
    return {"text": "\n".join(lines)}


def render(event: NotificationEvent, now: Optional[datetime] = None) -> RenderedMessage:
    """Render both shapes with the same timestamp."""
    now = now or utcnow()
    return RenderedMessage(card=render_card(event, now), plain=render_plain(event, now))
