#!/usr/bin/env python3
"""Proxy Watch — Webhook Test Tool.

Sends a sample offline alert through the full fallback chain and
records the attempt in the audit log.

Usage:
    python scripts/send_test_webhook.py https://open.feishu.cn/open-apis/bot/v2/hook/...
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from proxywatch.config import load_config
from proxywatch.database import queries
from proxywatch.database.db import Database
from proxywatch.notifier.audit import AttemptLogger
from proxywatch.notifier.dispatcher import NotificationDispatcher
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)


async def send_test(webhook_url: str) -> bool:
    """Send the test notification and print the last audit rows."""
    config = load_config()

    async with Database(config.database_path) as db:
        dispatcher = NotificationDispatcher(config.monitor, AttemptLogger(db))
        try:
            success = await dispatcher.send_test_notification(webhook_url)
        finally:
            await dispatcher.close()

        for entry in await queries.get_recent_attempt_logs(db, limit=5):
            logger.info(
                "  %s │ %-14s │ %-7s │ %s",
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                entry.type.value, entry.status.value, entry.url,
            )

    return success


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a test webhook notification")
    parser.add_argument("webhook_url", help="webhook address to test")
    args = parser.parse_args()

    if not args.webhook_url.strip():
        print("❌ Please provide a webhook URL")
        sys.exit(2)

    success = asyncio.run(send_test(args.webhook_url.strip()))
    if success:
        print("✅ Test notification sent")
    else:
        print("❌ Test notification failed (see logs/proxywatch.log)")
        sys.exit(1)


if __name__ == "__main__":
    main()
