"""Proxy Watch — HTTP Service.

aiohttp application exposing the two server-side endpoints the monitor
can delegate to:
  - POST /check-ip      probe one proxy: {ip, port, username, password}
  - POST /send-webhook  relay a message: {webhookUrl, card, simpleMessage}

The relay tries the card first and falls back to the simple message.
All responses carry permissive CORS headers and OPTIONS is answered.

Usage:
    python -m proxywatch.service
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from aiohttp import web

from proxywatch.config import MonitorConfig, load_config
from proxywatch.monitor.prober import ProxyReachabilityChecker, SocksReachabilityChecker
from proxywatch.notifier.webhook import post_json
from proxywatch.utils.logger import get_logger, set_console_level

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

CHECKER_KEY = web.AppKey("checker", ProxyReachabilityChecker)
HTTP_CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


def _json(payload: dict[str, Any], status: int = 200) -> web.Response:
    return web.json_response(payload, status=status, headers=CORS_HEADERS)


async def _read_json(request: web.Request) -> dict[str, Any]:
    """Parse a JSON object body; anything else is a 400."""
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be JSON"}',
            content_type="application/json",
            headers=CORS_HEADERS,
        )
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be a JSON object"}',
            content_type="application/json",
            headers=CORS_HEADERS,
        )
    return data


async def handle_options(request: web.Request) -> web.Response:
    return web.Response(status=200, headers=CORS_HEADERS)


async def handle_method_not_allowed(request: web.Request) -> web.Response:
    return _json({"error": "Method not allowed"}, status=405)


async def handle_check_ip(request: web.Request) -> web.Response:
    """Probe one proxy and return {status, response_time?, error?}."""
    try:
        data = await _read_json(request)
        ip = data.get("ip")
        port = data.get("port")
        username = data.get("username")
        password = data.get("password")

        if not ip or not port or not username or not password:
            return _json(
                {"error": "Missing required fields: ip, port, username, password"},
                status=400,
            )

        if isinstance(port, str) and port.strip().isdigit():
            port = int(port.strip())
        if isinstance(port, bool) or not isinstance(port, int):
            return _json({"error": "Port must be an integer"}, status=400)

        result = await request.app[CHECKER_KEY].check(ip, port, username, password)
        logger.info("check-ip %s:%s → %s", ip, port, result.status.value)
        return _json(result.to_dict())

    except web.HTTPException:
        raise
    except Exception as e:
        logger.error("IP check failed: %s", e)
        return _json({"status": "error", "error": str(e) or "Unknown error occurred"}, status=500)


async def handle_send_webhook(request: web.Request) -> web.Response:
    """Relay a card (then simple message) to the given webhook."""
    try:
        data = await _read_json(request)
        webhook_url = data.get("webhookUrl")
        if not webhook_url:
            return _json({"error": "Missing webhookUrl in request body"}, status=400)

        client = request.app[HTTP_CLIENT_KEY]
        last_error: Optional[str] = None

        for method, payload in (("card", data.get("card")), ("simple", data.get("simpleMessage"))):
            if not payload:
                continue
            result = await post_json(client, webhook_url, payload)
            if result.ok:
                logger.info("Relayed %s message to %s", method, webhook_url)
                return _json({
                    "success": True,
                    "message": "Webhook sent successfully",
                    "response": {
                        "method": method,
                        "status": result.status_code,
                        "body": result.body,
                    },
                })
            last_error = f"{method.capitalize()} format failed: {result.error}"
            logger.warning("%s", last_error)

        return _json(
            {"success": False, "error": last_error or "All webhook formats failed"},
            status=500,
        )

    except web.HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to relay webhook notification: %s", e)
        return _json({"success": False, "error": str(e) or "Unknown error occurred"}, status=500)


def create_app(
    config: MonitorConfig,
    checker: Optional[ProxyReachabilityChecker] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> web.Application:
    """Build the aiohttp application.

    Args:
        config: Monitor configuration (probe timeouts, request timeout).
        checker: Probe backend; defaults to a local SOCKS5 checker.
        client: httpx client for relayed POSTs; created and closed with
            the app when omitted.

    Returns:
        The configured web.Application.
    """
    app = web.Application()
    app[CHECKER_KEY] = checker or SocksReachabilityChecker(config)

    async def _http_client_ctx(app: web.Application):
        owned = client is None
        app[HTTP_CLIENT_KEY] = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.request_timeout_ms / 1000),
        )
        yield
        if owned:
            await app[HTTP_CLIENT_KEY].aclose()

    app.cleanup_ctx.append(_http_client_ctx)

    for path, handler in (("/check-ip", handle_check_ip), ("/send-webhook", handle_send_webhook)):
        app.router.add_post(path, handler)
        app.router.add_route("OPTIONS", path, handle_options)
        app.router.add_route("*", path, handle_method_not_allowed)

    return app


def main() -> None:
    """Run the service with settings from config/settings.yaml."""
    config = load_config()
    set_console_level(config.log_level)
    logger.info("Starting service on %s:%d", config.service.host, config.service.port)
    web.run_app(
        create_app(config.monitor),
        host=config.service.host,
        port=config.service.port,
        print=None,
    )


if __name__ == "__main__":
    main()
