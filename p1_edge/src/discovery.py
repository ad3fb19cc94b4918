"""
Endpoint discovery for the P1 meter's local HTTP API.

Two incompatible API generations exist for the same device family. The
discoverer probes them newest first and settles on the first one that
answers, without any configuration:

1. ``GET http://{host}/api/v2``
2. ``GET http://{host}/api/v1``
3. ``GET http://{host}/api`` (un-versioned, last resort for v1)

A probe wins when it answers within the timeout with a 2xx status and a
JSON object body. That body is kept as opaque device metadata. When every
probe fails, :class:`~p1_edge.src.errors.DeviceUnreachable` is raised; no
retry happens here and nothing is retained from the failed attempt.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Invalid URLs count as a failed probe

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from p1_edge.src.errors import DeviceUnreachable
from p1_edge.src.models import DiscoveryResult

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_S: float = 5.0
"""Timeout per discovery probe in seconds."""

PROBE_CANDIDATES: tuple[tuple[str, str], ...] = (
    ("v2", "/api/v2"),
    ("v1", "/api/v1"),
    ("v1", "/api"),
)
"""(version tag, probe path) pairs in descending order of preference."""


async def _probe(client: httpx.AsyncClient, url: str) -> dict[str, Any] | None:
    """GET *url* and return its JSON object body, or ``None`` if unusable."""
    try:
        response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.debug("Probe %s failed (network error): %s", url, exc)
        return None

    if not response.is_success:
        logger.debug("Probe %s failed (HTTP %d)", url, response.status_code)
        return None

    try:
        body = response.json()
    except ValueError:
        logger.debug("Probe %s failed (body is not JSON)", url)
        return None

    if not isinstance(body, dict):
        logger.debug("Probe %s failed (JSON body is not an object)", url)
        return None
    return body


async def discover(
    host: str,
    *,
    timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
) -> DiscoveryResult:
    """Find the newest API version the meter at *host* answers on.

    Args:
        host: Meter IP address or hostname. The caller guarantees it is set.
        timeout_s: Timeout applied to each probe.

    Returns:
        The :class:`DiscoveryResult` for the first successful probe.

    Raises:
        DeviceUnreachable: If no candidate produced a usable response.
    """
    attempted: list[str] = []
    async with httpx.AsyncClient(timeout=timeout_s) as client:
        for version, path in PROBE_CANDIDATES:
            url = f"http://{host}{path}"
            attempted.append(path)
            body = await _probe(client, url)
            if body is None:
                continue

            result = DiscoveryResult(
                version=version,
                probe_path=path,
                device_metadata=body,
            )
            logger.info(
                "Discovered P1 meter API %s at %s (product=%s, serial=%s)",
                version,
                url,
                result.product_name,
                result.serial,
            )
            return result

    raise DeviceUnreachable(host, attempted)
