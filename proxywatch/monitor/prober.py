"""Proxy Watch — Connectivity Prober.

Checks that a proxy endpoint actually relays traffic by fetching a
"what is my IP" service through it. Two backends implement the
ProxyReachabilityChecker interface:
  - SocksReachabilityChecker: probes locally over SOCKS5 with httpx
  - RemoteReachabilityChecker: asks a /check-ip service to probe

Every check produces exactly one ProbeResult and never raises:
  - online:  the proxy returned a dotted-quad address
  - offline: transport failure, or the proxy answered with garbage
  - error:   bad inputs or an internal failure (not reachability info)
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Any, Callable, Optional, Protocol
from urllib.parse import quote

import httpx
from socksio.exceptions import ProtocolError

from proxywatch.config import MonitorConfig
from proxywatch.database.models import ProbeResult, ProbeStatus
from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────
IPV4_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
INVALID_RESPONSE_ERROR = "Invalid response from proxy"
CONNECTION_FAILED_ERROR = "Connection failed"

ClientFactory = Callable[[str, httpx.Timeout], httpx.AsyncClient]


class ProxyReachabilityChecker(Protocol):
    """Capability interface for probing one proxy endpoint."""

    async def check(
        self, ip: str, port: int, username: str, password: str,
    ) -> ProbeResult:
        ...


def _validate_inputs(ip: str, port: Any, username: str, password: str) -> None:
    """Reject inputs no probe can run with.

    Raises:
        ValueError: On an empty field or an out-of-range port.
    """
    if not ip or not username or not password:
        raise ValueError("Missing required fields: ip, port, username, password")
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"Port must be an integer, got {port!r}")
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")


def build_proxy_url(ip: str, port: int, username: str, password: str) -> str:
    """Build a socks5:// URL with percent-encoded credentials."""
    return f"socks5://{quote(username, safe='')}:{quote(password, safe='')}@{ip}:{port}"


def _default_client_factory(proxy_url: str, timeout: httpx.Timeout) -> httpx.AsyncClient:
    return httpx.AsyncClient(proxy=proxy_url, timeout=timeout)


class SocksReachabilityChecker:
    """Probe a proxy locally by fetching the reachability URL through it.

    Attributes:
        config: MonitorConfig supplying the timeouts and the URL.
    """

    def __init__(
        self,
        config: MonitorConfig,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """Initialize the checker.

        Args:
            config: Monitor configuration.
            client_factory: Builds the proxied httpx client from a proxy
                URL and timeout; replaced in tests.
        """
        self.config = config
        self._client_factory = client_factory or _default_client_factory
        self._timeout = httpx.Timeout(
            config.total_timeout_ms / 1000,
            connect=config.connect_timeout_ms / 1000,
        )

    async def check(
        self, ip: str, port: int, username: str, password: str,
    ) -> ProbeResult:
        """Probe one endpoint.

        Args:
            ip: Proxy address.
            port: Proxy port.
            username: Proxy username.
            password: Proxy password.

        Returns:
            The ProbeResult for this endpoint.
        """
        start = time.monotonic()
        try:
            _validate_inputs(ip, port, username, password)
            proxy_url = build_proxy_url(ip, port, username, password)

            try:
                body = await asyncio.wait_for(
                    self._fetch(proxy_url),
                    timeout=self.config.total_timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                error = f"Timed out after {self.config.total_timeout_ms}ms"
                logger.info("Probe %s:%s offline: %s", ip, port, error)
                return ProbeResult(ip=ip, port=port, status=ProbeStatus.OFFLINE, error=error)
            except (httpx.HTTPError, ProtocolError, OSError) as e:
                # Handshake garbage from a non-SOCKS peer surfaces as a
                # socksio ProtocolError rather than an httpx error.
                error = str(e) or CONNECTION_FAILED_ERROR
                logger.info("Probe %s:%s offline: %s", ip, port, error[:200])
                return ProbeResult(ip=ip, port=port, status=ProbeStatus.OFFLINE, error=error)

            elapsed_ms = int((time.monotonic() - start) * 1000)
            if IPV4_PATTERN.match(body.strip()):
                logger.debug("Probe %s:%s online (%dms)", ip, port, elapsed_ms)
                return ProbeResult(
                    ip=ip, port=port, status=ProbeStatus.ONLINE, response_time=elapsed_ms,
                )

            logger.info("Probe %s:%s returned a non-IP body: %r", ip, port, body[:80])
            return ProbeResult(
                ip=ip, port=port, status=ProbeStatus.OFFLINE, error=INVALID_RESPONSE_ERROR,
            )

        except Exception as e:
            logger.error("Probe %s:%s failed internally: %s", ip, port, e)
            return ProbeResult(
                ip=ip, port=port, status=ProbeStatus.ERROR, error=str(e) or "Unknown error",
            )

    async def _fetch(self, proxy_url: str) -> str:
        """GET the reachability URL through the proxy and return the body.

        Non-2xx responses are not raised; their body fails validation.
        """
        async with self._client_factory(proxy_url, self._timeout) as client:
            resp = await client.get(self.config.reachability_url)
            return resp.text


class RemoteReachabilityChecker:
    """Delegate probing to a remote /check-ip service.

    Anything short of a well-formed service answer is an "error": the
    probe never ran, so nothing is known about the proxy.
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the checker.

        Args:
            config: Monitor configuration with probe_service_url set.
            client: Shared httpx client; one is created lazily otherwise.
        """
        self.config = config
        self._client = client
        self._owns_client = client is None
        # The service itself probes for up to total_timeout.
        self._timeout = httpx.Timeout(config.total_timeout_ms / 1000 + 5)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def check(
        self, ip: str, port: int, username: str, password: str,
    ) -> ProbeResult:
        """Ask the probe service to check one endpoint."""
        headers = {"Content-Type": "application/json"}
        if self.config.relay_auth_token:
            headers["Authorization"] = f"Bearer {self.config.relay_auth_token}"

        try:
            resp = await self._get_client().post(
                self.config.probe_service_url,
                json={"ip": ip, "port": port, "username": username, "password": password},
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Probe service unreachable for %s:%s: %s", ip, port, e)
            return ProbeResult(
                ip=ip, port=port, status=ProbeStatus.ERROR,
                error=f"Probe service unreachable: {e}",
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.status_code == 400:
            error = data.get("error") or "Bad probe request"
            logger.error("Probe service rejected %s:%s: %s", ip, port, error)
            return ProbeResult(ip=ip, port=port, status=ProbeStatus.ERROR, error=error)

        if not resp.is_success:
            error = data.get("error") or f"Probe service returned HTTP {resp.status_code}"
            logger.warning("Probe service failed for %s:%s: %s", ip, port, error)
            return ProbeResult(ip=ip, port=port, status=ProbeStatus.ERROR, error=error)

        try:
            status = ProbeStatus(data.get("status"))
            response_time = data.get("response_time")
            if response_time is not None:
                response_time = int(response_time)
        except (TypeError, ValueError):
            return ProbeResult(
                ip=ip, port=port, status=ProbeStatus.ERROR,
                error=f"Unexpected probe service response: {resp.text[:200]}",
            )

        return ProbeResult(
            ip=ip,
            port=port,
            status=status,
            response_time=response_time,
            error=data.get("error"),
        )

    async def close(self) -> None:
        """Close the httpx client if this checker created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def create_checker(
    config: MonitorConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> ProxyReachabilityChecker:
    """Build the checker selected by config.probe_backend.

    Args:
        config: Monitor configuration.
        client: Shared httpx client for the remote backend.

    Returns:
        A ProxyReachabilityChecker implementation.
    """
    if config.probe_backend == "remote":
        return RemoteReachabilityChecker(config, client=client)
    return SocksReachabilityChecker(config)
