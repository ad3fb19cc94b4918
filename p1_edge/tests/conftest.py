"""
Shared test fixtures for P1 edge daemon tests.

Provides environment variable fixtures for BridgeSettings configuration
tests, and canned meter payloads / discovery results for the HTTP-facing
modules. All edge env vars are cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Any

import pytest
from p1_edge.src.models import DiscoveryResult

# All BridgeSettings environment variable names, used for cleanup.
_ALL_EDGE_ENV_VARS = (
    "P1_IP",
    "P1_DEVICES",
    "POLL_INTERVAL_S",
    "REQUEST_TIMEOUT_S",
    "HIDE_POWER_CONSUMPTION_DEVICE",
    "HIDE_POWER_RETURN_DEVICE",
    "STORAGE_PATH",
    "HEALTH_PATH",
    "PLATFORM_CONFIG",
)

_METADATA_V1: dict[str, Any] = {
    "product_type": "HWE-P1",
    "product_name": "P1 meter",
    "serial": "3c39e7aabbcc",
    "firmware_version": "4.19",
    "api_version": "v1",
}

_DATA_PAYLOAD: dict[str, Any] = {
    "active_power_w": 1500.0,
    "total_power_import_kwh": 1203.4,
    "total_power_export_kwh": 310.2,
    "active_voltage_l1_v": 231.5,
}


@pytest.fixture(autouse=True)
def _clean_edge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all edge env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_EDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every BridgeSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "P1_IP": "192.168.1.50",
        "P1_DEVICES": '["192.168.1.51"]',
        "POLL_INTERVAL_S": "15",
        "REQUEST_TIMEOUT_S": "3.5",
        "HIDE_POWER_CONSUMPTION_DEVICE": "false",
        "HIDE_POWER_RETURN_DEVICE": "true",
        "STORAGE_PATH": "/tmp/p1-edge",
        "HEALTH_PATH": "/tmp/p1-edge/health.json",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def discovery_v1() -> DiscoveryResult:
    """Discovery result for a meter answering on API v1."""
    return DiscoveryResult(version="v1", probe_path="/api/v1", device_metadata=dict(_METADATA_V1))


@pytest.fixture()
def meter_metadata() -> dict[str, Any]:
    """Device metadata body returned by ``GET /api/v1``."""
    return dict(_METADATA_V1)


@pytest.fixture()
def data_payload() -> dict[str, Any]:
    """Sample body returned by ``GET /api/v1/data`` (importing 1500 W)."""
    return dict(_DATA_PAYLOAD)
