"""Proxy Watch — Webhook Delivery.

A single JSON POST to a webhook, reduced to a DeliveryResult. Shared by
the dispatcher's direct stages and the relay endpoint of the service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from proxywatch.utils.logger import get_logger

logger = get_logger(__name__)

_BODY_PREVIEW = 500


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one POST.

    Attributes:
        ok: True when the receiver acknowledged with a 2xx status.
        status_code: HTTP status, None on transport failure.
        body: Response body (truncated).
        error: Failure description when not ok.
        data: Parsed JSON body, None if the body is not JSON.
    """

    ok: bool
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None
    data: Any = None


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Any,
    headers: Optional[dict[str, str]] = None,
) -> DeliveryResult:
    """POST a JSON payload and report whether it was acknowledged.

    Transport errors are returned, not raised.

    Args:
        client: Shared httpx client.
        url: Target address.
        payload: JSON-serializable body.
        headers: Extra request headers.

    Returns:
        The DeliveryResult.
    """
    try:
        resp = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.debug("POST %s failed: %s", url, e)
        return DeliveryResult(ok=False, error=f"{type(e).__name__}: {e}")

    body = resp.text[:_BODY_PREVIEW]
    logger.debug("POST %s → %d", url, resp.status_code)
    try:
        data = resp.json()
    except ValueError:
        data = None

    if resp.is_success:
        return DeliveryResult(ok=True, status_code=resp.status_code, body=body, data=data)
    return DeliveryResult(
        ok=False,
        status_code=resp.status_code,
        body=body,
        error=f"HTTP {resp.status_code} {body}".strip(),
        data=data,
    )
