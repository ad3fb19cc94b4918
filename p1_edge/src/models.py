"""
Pydantic models for P1 meter samples, derived sensor readings, and the
accessory reconciliation vocabulary.

RawSample is the meter's instantaneous report as returned by
``GET /api/{version}/data``. SensorReading is the per-sensor view derived
from it by the mapper. DiscoveryResult, SensorIdentity, AccessoryRecord
and the intent models are immutable values passed between the discoverer,
the reconciler, and the scheduler.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Integers too large for a float fall back to the field default

TODO:
- None
"""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VOLTAGE_V: float = 230.0
"""Voltage reported when the meter omits ``active_voltage_l1_v``."""

_STABLE_ID_NAMESPACE = uuid.NAMESPACE_URL


# ---------------------------------------------------------------------------
# Raw meter sample
# ---------------------------------------------------------------------------


def _coerce_number(value: Any, default: float | None) -> float | None:
    """Return *value* as a finite float, or *default* when it is not one."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    try:
        number = float(value)
    except OverflowError:
        return default
    if not math.isfinite(number):
        return default
    return number


class RawSample(BaseModel):
    """A single instantaneous report from the P1 meter.

    Attributes:
        active_power_w: Signed grid power in watts. Positive = importing
            from the grid, negative = exporting to the grid.
        total_import_kwh: Meter total of energy imported, in kWh.
        total_export_kwh: Meter total of energy exported, in kWh.
        voltage_l1_v: Phase L1 voltage, or ``None`` when not reported.
    """

    model_config = ConfigDict(frozen=True)

    active_power_w: float = 0.0
    total_import_kwh: float = Field(default=0.0, ge=0)
    total_export_kwh: float = Field(default=0.0, ge=0)
    voltage_l1_v: float | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RawSample:
        """Build a sample from the meter's ``/data`` JSON object.

        Missing or non-numeric fields fall back to 0 (voltage to ``None``).
        Negative totals are treated as malformed and also fall back to 0,
        so building never fails for a JSON object.

        Args:
            payload: Decoded JSON object from the data endpoint.
        """
        total_import = _coerce_number(payload.get("total_power_import_kwh"), 0.0)
        total_export = _coerce_number(payload.get("total_power_export_kwh"), 0.0)
        return cls(
            active_power_w=_coerce_number(payload.get("active_power_w"), 0.0),
            total_import_kwh=total_import if total_import >= 0 else 0.0,
            total_export_kwh=total_export if total_export >= 0 else 0.0,
            voltage_l1_v=_coerce_number(payload.get("active_voltage_l1_v"), None),
        )


# ---------------------------------------------------------------------------
# Derived sensor readings
# ---------------------------------------------------------------------------


class SensorKind(str, Enum):
    """The two derived sensors. Definition order is the reconcile order."""

    IMPORT = "import"
    EXPORT = "export"


class SensorReading(BaseModel):
    """Per-sensor view of one raw sample.

    Attributes:
        kind: Which derived sensor this reading belongs to.
        instantaneous_w: Non-negative power for this direction, in watts.
        cumulative_kwh: Meter total for this direction, in kWh.
        voltage_v: Phase L1 voltage, in volts.
        timestamp: Unix seconds (floored) at mapping time.
    """

    model_config = ConfigDict(frozen=True)

    kind: SensorKind
    instantaneous_w: float = Field(ge=0)
    cumulative_kwh: float = Field(ge=0)
    voltage_v: float
    timestamp: int


class MappedSample(BaseModel):
    """The import and export readings derived from one raw sample."""

    model_config = ConfigDict(frozen=True)

    import_reading: SensorReading
    export_reading: SensorReading

    def for_kind(self, kind: SensorKind) -> SensorReading:
        """Return the reading for *kind*."""
        if kind is SensorKind.IMPORT:
            return self.import_reading
        return self.export_reading


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class DiscoveryResult(BaseModel):
    """Outcome of endpoint discovery, fixed for the rest of the session.

    Attributes:
        version: API version tag that answered (``"v2"`` or ``"v1"``).
        probe_path: The path that answered the probe, e.g. ``/api``.
        device_metadata: The probe response body, kept opaque.
    """

    model_config = ConfigDict(frozen=True)

    version: Literal["v2", "v1"]
    probe_path: str
    device_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def base_path(self) -> str:
        """Versioned API prefix used for every data fetch."""
        return f"/api/{self.version}"

    @property
    def serial(self) -> str:
        return str(self.device_metadata.get("serial") or "unknown")

    @property
    def product_name(self) -> str:
        return str(
            self.device_metadata.get("product_name")
            or self.device_metadata.get("product_type")
            or "P1 Meter"
        )

    def data_url(self, host: str) -> str:
        """Return the polling URL for *host*."""
        return f"http://{host}{self.base_path}/data"


# ---------------------------------------------------------------------------
# Accessory reconciliation
# ---------------------------------------------------------------------------


_STABLE_ID_SEEDS: dict[SensorKind, str] = {
    SensorKind.IMPORT: "homewizard-power-consumption",
    SensorKind.EXPORT: "homewizard-power-return",
}


def stable_id_for(kind: SensorKind) -> str:
    """Deterministic accessory id for *kind*, independent of the device serial."""
    return str(uuid.uuid5(_STABLE_ID_NAMESPACE, _STABLE_ID_SEEDS[kind]))


class SensorIdentity(BaseModel):
    """Stable identity of one logical sensor."""

    model_config = ConfigDict(frozen=True)

    kind: SensorKind
    stable_id: str


class AccessoryRecord(BaseModel):
    """An accessory as known to the host runtime's persistent store.

    Attributes:
        identity: The sensor identity the accessory was created for.
        display_name: Name shown by the host.
        exists_in_host_store: Whether the host restored it from storage.
        is_enabled_by_config: Whether configuration keeps it visible.
    """

    model_config = ConfigDict(frozen=True)

    identity: SensorIdentity
    display_name: str = ""
    exists_in_host_store: bool = True
    is_enabled_by_config: bool = True


class Create(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Literal["create"] = "create"
    identity: SensorIdentity


class BindExisting(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Literal["bind_existing"] = "bind_existing"
    identity: SensorIdentity
    record: AccessoryRecord


class Remove(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: Literal["remove"] = "remove"
    record: AccessoryRecord


Intent = Create | BindExisting | Remove
"""A reconciliation decision to be executed against the host runtime."""
