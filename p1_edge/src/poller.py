"""
HTTP poller for the P1 meter's data endpoint.

Fetches ``http://{host}{base_path}/data`` once per call using the base path
fixed by discovery, and turns the JSON body into a
:class:`~p1_edge.src.models.RawSample`. Designed for a strictly serialized
poll loop:

- Every request carries an explicit timeout, so a hung meter never stalls
  the next cycle beyond that bound.
- There is no retry and no backoff: a failed fetch raises
  :class:`~p1_edge.src.errors.CycleFetchError` and the cycle is skipped.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Invalid URLs and unusable samples raise CycleFetchError

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from p1_edge.src.errors import CycleFetchError
from p1_edge.src.models import RawSample

if TYPE_CHECKING:
    from p1_edge.src.models import DiscoveryResult

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_S: float = 5.0
"""Timeout per data request in seconds."""


async def fetch_sample(url: str, *, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S) -> RawSample:
    """GET one sample from *url*.

    Args:
        url: Full data endpoint URL.
        timeout_s: Request timeout in seconds.

    Returns:
        The parsed :class:`RawSample`.

    Raises:
        CycleFetchError: On transport errors, timeouts, non-2xx statuses,
            or a body that is not a JSON object.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise CycleFetchError(f"GET {url} failed: {exc!r}") from exc

    if not response.is_success:
        raise CycleFetchError(f"GET {url} returned HTTP {response.status_code}")

    try:
        body = response.json()
    except ValueError as exc:
        raise CycleFetchError(f"GET {url} returned a non-JSON body") from exc

    if not isinstance(body, dict):
        raise CycleFetchError(f"GET {url} returned {type(body).__name__}, expected object")

    try:
        return RawSample.from_payload(body)
    except ValueError as exc:
        raise CycleFetchError(f"GET {url} returned an unusable sample: {exc}") from exc


class Poller:
    """Fetches samples from the data endpoint chosen at discovery.

    The URL is computed once from the immutable discovery result, so the
    endpoint cannot change mid-session.

    Args:
        host: Meter IP address or hostname.
        discovery: Result of endpoint discovery.
        timeout_s: Timeout per request in seconds.
    """

    def __init__(
        self,
        *,
        host: str,
        discovery: DiscoveryResult,
        timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
    ) -> None:
        self._url = discovery.data_url(host)
        self._timeout_s = timeout_s

    @property
    def url(self) -> str:
        return self._url

    async def poll(self) -> RawSample:
        """Fetch one sample. Raises CycleFetchError on any failure."""
        sample = await fetch_sample(self._url, timeout_s=self._timeout_s)
        logger.debug("Fetched sample from %s: %s", self._url, sample)
        return sample
