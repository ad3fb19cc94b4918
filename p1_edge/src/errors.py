"""
Error taxonomy for the P1 edge daemon.

- ConfigError: required configuration (meter IP) missing or invalid.
  Fatal at startup, no retry.
- DeviceUnreachable: every discovery probe failed. Fatal for the current
  startup attempt.
- CycleFetchError: a single poll cycle failed (transport, HTTP status or
  body). Only that cycle is skipped.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations


class EdgeError(Exception):
    """Base class for all P1 edge daemon errors."""


class ConfigError(EdgeError):
    """Raised when required configuration is missing or invalid."""


class DiscoveryError(EdgeError):
    """Raised when endpoint discovery cannot produce a result."""


class DeviceUnreachable(DiscoveryError):
    """Raised when no API version probe answered with a usable body.

    Args:
        host: The meter host that was probed.
        attempted: The probe paths tried, in order.
    """

    def __init__(self, host: str, attempted: list[str]) -> None:
        self.host = host
        self.attempted = attempted
        super().__init__(
            f"P1 meter at {host} unreachable (tried {', '.join(attempted)})"
        )


class CycleFetchError(EdgeError):
    """Raised when one poll cycle cannot obtain a well-formed sample."""
