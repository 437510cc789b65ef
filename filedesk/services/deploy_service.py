"""Deployment webhook trigger."""

from __future__ import annotations

import logging

import httpx

from filedesk.exceptions import DeployError, DeployNotConfiguredError

logger = logging.getLogger(__name__)

_ACCEPTED_STATUSES = frozenset({200, 201})


async def trigger_deploy(
    hook_url: str,
    *,
    timeout: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """POST to the deploy hook once. Raises DeployError unless it answers 200/201."""
    if not hook_url:
        msg = "Deploy hook URL not configured"
        raise DeployNotConfiguredError(msg)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as http_client:
            response = await http_client.post(hook_url)
    except httpx.HTTPError as exc:
        logger.error("Deploy hook request failed: %s", exc)
        msg = f"Failed to trigger deployment: {exc}"
        raise DeployError(msg) from exc

    if response.status_code not in _ACCEPTED_STATUSES:
        logger.error("Deploy hook answered %d", response.status_code)
        msg = f"Failed to trigger deployment (status {response.status_code})"
        raise DeployError(msg)
    logger.info("Deployment triggered")
