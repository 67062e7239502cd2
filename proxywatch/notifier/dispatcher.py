"""Proxy Watch — Notification Dispatcher.

Delivers one NotificationEvent to a webhook through an ordered fallback
chain, stopping at the first stage that succeeds:
  1. card message posted directly to the webhook
  2. plain message posted directly to the webhook
  3. both shapes handed to the relay service, which posts them from
     outside this network

Exactly one audit row is written per dispatch, whatever the number of
stages tried. dispatch() never raises.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

import httpx

from proxywatch.config import MonitorConfig
from proxywatch.database.models import (
    AttemptLogEntry,
    AttemptOutcome,
    EndpointRecord,
    EventKind,
    NotificationEvent,
    RecordStatus,
    utcnow,
)
from proxywatch.notifier.audit import AttemptLogger
from proxywatch.notifier.formatters import RenderedMessage, render
from proxywatch.notifier.webhook import post_json
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

Stage = Callable[[str, RenderedMessage], Awaitable[bool]]


class NotificationDispatcher:
    """Webhook dispatcher with direct and relay fallbacks.

    Attributes:
        config: MonitorConfig with the relay settings.
        audit: AttemptLogger receiving one entry per dispatch.
    """

    def __init__(
        self,
        config: MonitorConfig,
        audit: AttemptLogger,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Monitor configuration.
            audit: Attempt logger for the audit row.
            client: Shared httpx client; one is created lazily otherwise.
        """
        self.config = config
        self.audit = audit
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout_ms / 1000),
            )
        return self._client

    def _stages(self) -> list[tuple[str, Stage]]:
        return [
            ("card", self._send_card),
            ("plain", self._send_plain),
            ("relay", self._send_via_relay),
        ]

    async def dispatch(self, target_url: str, event: NotificationEvent) -> bool:
        """Deliver an event, falling back stage by stage.

        Args:
            target_url: Webhook address of the receiver.
            event: The event to deliver.

        Returns:
            True if any stage was acknowledged.
        """
        record_id = event.record.id
        plain_text = event.message
        success = False

        try:
            rendered = render(event)
            plain_text = rendered.text

            for name, stage in self._stages():
                try:
                    if await stage(target_url, rendered):
                        logger.info(
                            "Webhook %s for %s delivered via %s stage",
                            EventKind(event.kind).value, event.record.endpoint, name,
                        )
                        success = True
                        break
                except Exception as e:
                    logger.warning("Webhook %s stage raised: %s", name, e)

            if not success:
                logger.error(
                    "All webhook stages failed for %s (%s)",
                    event.record.endpoint, EventKind(event.kind).value,
                )
        except Exception as e:
            logger.error("Dispatch of %s for %s failed: %s", event.kind, record_id, e)

        await self.audit.record(AttemptLogEntry(
            type=event.kind,
            message=plain_text,
            url=target_url,
            status=AttemptOutcome.SUCCESS if success else AttemptOutcome.FAILED,
            record_id=record_id,
        ))
        return success

    # ── Fallback stages ──────────────────────────────────

    async def _send_card(self, target_url: str, rendered: RenderedMessage) -> bool:
        result = await post_json(self._get_client(), target_url, rendered.card)
        if not result.ok:
            logger.warning("Card message failed: %s", result.error)
        return result.ok

    async def _send_plain(self, target_url: str, rendered: RenderedMessage) -> bool:
        result = await post_json(self._get_client(), target_url, rendered.plain)
        if not result.ok:
            logger.warning("Plain message failed: %s", result.error)
        return result.ok

    async def _send_via_relay(self, target_url: str, rendered: RenderedMessage) -> bool:
        """Hand both shapes to the relay; success needs {"success": true}."""
        if not self.config.relay_service_url:
            logger.warning("No relay service configured, skipping relay stage")
            return False

        headers = {}
        if self.config.relay_auth_token:
            headers["Authorization"] = f"Bearer {self.config.relay_auth_token}"

        result = await post_json(
            self._get_client(),
            self.config.relay_service_url,
            {"webhookUrl": target_url, "card": rendered.card, "simpleMessage": rendered.plain},
            headers=headers,
        )
        if not result.ok:
            logger.warning("Relay delivery failed: %s", result.error)
            return False

        acknowledged = isinstance(result.data, dict) and result.data.get("success") is True
        if not acknowledged:
            logger.warning("Relay did not confirm delivery: %s", result.body[:200])
        return acknowledged

    # ── Extras ───────────────────────────────────────────

    async def send_test_notification(
        self, target_url: str, now: Optional[datetime] = None,
    ) -> bool:
        """Send an offline alert for a synthetic record to test a webhook.

        Args:
            target_url: Webhook address to test.
            now: Reference time; defaults to now.

        Returns:
            True if the test message was delivered.
        """
        now = now or utcnow()
        record = EndpointRecord(
            id="test-id",
            ip="192.168.1.100",
            port=1080,
            username="test_user",
            password="test_pass",
            name="Test Proxy",
            notes="This is a test notification",
            expiry_date=now + timedelta(days=30),
            status=RecordStatus.OFFLINE,
            webhook_url=target_url,
        )
        return await self.dispatch(target_url, NotificationEvent(
            kind=EventKind.OFFLINE,
            record=record,
            message="This is a test notification - proxy connection check failed",
        ))

    async def close(self) -> None:
        """Close the httpx client if this dispatcher created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
