"""
Edge daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded IPs.

Platform-style configuration mappings (``ip``, ``devices``,
``pollInterval``, ``hidePowerConsumptionDevice``, ``hidePowerReturnDevice``)
are accepted through :meth:`BridgeSettings.from_platform_config`.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Validate the meter address; add load_settings() with PLATFORM_CONFIG

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from p1_edge.src.errors import ConfigError

PLATFORM_NAME = "HomeWizardPowerConsumption"
"""Value of the ``platform`` key identifying this bridge in a platforms list."""

# Platform config key -> BridgeSettings field name.
_PLATFORM_KEYS: dict[str, str] = {
    "ip": "p1_ip",
    "pollInterval": "poll_interval_s",
    "hidePowerConsumptionDevice": "hide_power_consumption_device",
    "hidePowerReturnDevice": "hide_power_return_device",
}


class BridgeSettings(BaseSettings):
    """Edge daemon configuration for the P1 meter bridge.

    All values are loaded from environment variables. The meter address is
    checked by :meth:`require_host` rather than by validation, so a missing
    address surfaces as a :class:`ConfigError` at startup.

    Attributes:
        p1_ip: P1 meter IP address / hostname on the local LAN.
        p1_devices: Alternative list of meter addresses. The first entry is
            used when p1_ip is not set.
        poll_interval_s: Seconds between poll cycles (default 10).
        request_timeout_s: Timeout for every HTTP request to the meter.
        hide_power_consumption_device: Remove the import sensor.
        hide_power_return_device: Remove the export sensor.
        storage_path: Directory for the accessory store and history logs.
        health_path: Path of the JSON health file.
        platform_config: Optional path of a platform-style JSON config file,
            read by :func:`load_settings`.
    """

    p1_ip: str = ""
    p1_devices: list[str] = []
    poll_interval_s: int = 10
    request_timeout_s: float = 5.0
    hide_power_consumption_device: bool = False
    hide_power_return_device: bool = False
    storage_path: str = "/data"
    health_path: str = "/data/health.json"
    platform_config: str = ""

    @model_validator(mode="after")
    def _default_ip_from_devices(self) -> BridgeSettings:
        """Default p1_ip to the first configured device when not set."""
        self.p1_ip = self.p1_ip.strip()
        if not self.p1_ip and self.p1_devices:
            self.p1_ip = self.p1_devices[0].strip()
        return self

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least one second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        """Validate the HTTP timeout is a positive bound."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    def require_host(self) -> str:
        """Return the meter host, or raise ConfigError when none is usable.

        The host must form a valid ``http://{host}/`` URL.
        """
        if not self.p1_ip:
            raise ConfigError(
                "Please provide the P1 meter's IP address (P1_IP or P1_DEVICES)"
            )
        try:
            url = httpx.URL(f"http://{self.p1_ip}/")
        except httpx.InvalidURL as err:
            raise ConfigError(f"Invalid P1 meter address {self.p1_ip!r}: {err}") from err
        if not url.host:
            raise ConfigError(f"Invalid P1 meter address {self.p1_ip!r}: missing host")
        return self.p1_ip

    @classmethod
    def from_platform_config(cls, config: Mapping[str, Any]) -> BridgeSettings:
        """Build settings from a platform-style config mapping.

        Keys that are absent keep their environment / default values.
        ``devices`` entries may be plain addresses or objects with an
        ``ip`` key.

        Args:
            config: Parsed platform configuration.
        """
        values: dict[str, Any] = {
            field: config[key] for key, field in _PLATFORM_KEYS.items() if key in config
        }
        devices = config.get("devices")
        if devices:
            values["p1_devices"] = [
                str(device.get("ip", "")) if isinstance(device, Mapping) else str(device)
                for device in devices
            ]
        return cls(**values)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def load_settings() -> BridgeSettings:
    """Load settings from the environment, then apply the platform config file.

    When ``PLATFORM_CONFIG`` names a JSON file, its keys are mapped through
    :meth:`BridgeSettings.from_platform_config` and take precedence over the
    environment. The file may hold the platform object itself or a full
    host config with a ``platforms`` list, in which case the entry whose
    ``platform`` is :data:`PLATFORM_NAME` is used.

    Raises:
        ConfigError: If the platform config file is unreadable or holds no
            usable platform entry.
        pydantic.ValidationError: If a configured value is invalid.
    """
    settings = BridgeSettings()
    if not settings.platform_config:
        return settings

    path = Path(settings.platform_config)
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as err:
        raise ConfigError(f"Cannot read platform config {path}: {err}") from err

    if isinstance(data, dict) and isinstance(data.get("platforms"), list):
        entries = [
            entry
            for entry in data["platforms"]
            if isinstance(entry, Mapping) and entry.get("platform") == PLATFORM_NAME
        ]
        if not entries:
            raise ConfigError(f"No {PLATFORM_NAME} platform entry in {path}")
        data = entries[0]

    if not isinstance(data, Mapping):
        raise ConfigError(f"Platform config {path} is not a JSON object")
    return BridgeSettings.from_platform_config(data)
