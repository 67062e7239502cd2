"""Proxy Watch — Notifier Package.

Webhook alerts for offline and expiring proxies. Components:
  - formatters: card and plain message builders
  - webhook: single JSON POST with acknowledgment check
  - dispatcher: card → plain → relay fallback chain
  - audit: one webhook_logs row per dispatch
"""

from proxywatch.notifier.audit import AttemptLogger
from proxywatch.notifier.dispatcher import NotificationDispatcher
from proxywatch.notifier.formatters import RenderedMessage, render, render_card, render_plain

__all__ = [
    "AttemptLogger",
    "NotificationDispatcher",
    "RenderedMessage",
    "render",
    "render_card",
    "render_plain",
]
