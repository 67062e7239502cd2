from __future__ import annotations

import os
import tempfile

os.environ.setdefault("PROXYWATCH_LOG_DIR", tempfile.mkdtemp(prefix="proxywatch-logs-"))

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
import pytest_asyncio

from proxywatch.config import MonitorConfig
from proxywatch.database.db import Database
from proxywatch.database.models import AttemptLogEntry, EndpointRecord

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record() -> Callable[..., EndpointRecord]:
    counter = {"n": 0}

    def _make(**overrides: Any) -> EndpointRecord:
        counter["n"] += 1
        n = counter["n"]
        fields: dict[str, Any] = {
            "id": f"rec-{n}",
            "ip": f"10.0.0.{n}",
            "port": 1080,
            "username": "user",
            "password": "secret",
            "expiry_date": datetime.now(timezone.utc) + timedelta(days=90),
            "name": f"proxy-{n}",
            "webhook_url": "https://hooks.example/abc",
        }
        fields.update(overrides)
        return EndpointRecord(**fields)

    return _make


@pytest.fixture
def monitor_config() -> MonitorConfig:
    return MonitorConfig(
        relay_service_url="https://relay.example/send-webhook",
        relay_auth_token="relay-token",
    )


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


class RecordingAudit:
    """Audit sink that keeps entries in memory."""

    def __init__(self) -> None:
        self.entries: list[AttemptLogEntry] = []

    async def record(self, entry: AttemptLogEntry) -> None:
        self.entries.append(entry)


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()
