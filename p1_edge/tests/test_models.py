"""
Unit tests for the P1 edge pydantic models.

Tests verify:
- RawSample.from_payload maps meter JSON keys and never fails on bad fields.
- DiscoveryResult derives base path, data URL, serial and product name.
- Stable ids are deterministic per sensor kind.
- Models are immutable.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import Any

import pytest
from p1_edge.src.models import (
    DiscoveryResult,
    RawSample,
    SensorIdentity,
    SensorKind,
    stable_id_for,
)
from pydantic import ValidationError


class TestRawSampleFromPayload:
    """RawSample.from_payload is total over JSON objects."""

    def test_maps_meter_keys(self, data_payload: dict[str, Any]) -> None:
        sample = RawSample.from_payload(data_payload)

        assert sample.active_power_w == 1500.0
        assert sample.total_import_kwh == 1203.4
        assert sample.total_export_kwh == 310.2
        assert sample.voltage_l1_v == 231.5

    def test_ignores_unrelated_keys(self, data_payload: dict[str, Any]) -> None:
        data_payload["wifi_strength"] = 88
        data_payload["meter_model"] = "ISKRA 2M550T-101"

        sample = RawSample.from_payload(data_payload)

        assert sample.active_power_w == 1500.0

    def test_missing_fields_default(self) -> None:
        sample = RawSample.from_payload({})

        assert sample.active_power_w == 0.0
        assert sample.total_import_kwh == 0.0
        assert sample.total_export_kwh == 0.0
        assert sample.voltage_l1_v is None

    @pytest.mark.parametrize("bad", [None, "n/a", [], {}, True, float("nan"), 10**400])
    def test_malformed_fields_default(self, bad: Any) -> None:
        sample = RawSample.from_payload(
            {
                "active_power_w": bad,
                "total_power_import_kwh": bad,
                "total_power_export_kwh": bad,
                "active_voltage_l1_v": bad,
            }
        )

        assert sample.active_power_w == 0.0
        assert sample.total_import_kwh == 0.0
        assert sample.total_export_kwh == 0.0
        assert sample.voltage_l1_v is None

    def test_negative_totals_default_to_zero(self) -> None:
        sample = RawSample.from_payload(
            {"total_power_import_kwh": -1.0, "total_power_export_kwh": -2.0}
        )

        assert sample.total_import_kwh == 0.0
        assert sample.total_export_kwh == 0.0

    def test_integer_power_accepted(self) -> None:
        sample = RawSample.from_payload({"active_power_w": -850})

        assert sample.active_power_w == -850.0

    def test_sample_is_frozen(self) -> None:
        sample = RawSample.from_payload({})

        with pytest.raises(ValidationError):
            sample.active_power_w = 5.0  # type: ignore[misc]


class TestDiscoveryResult:
    """Derived properties of the discovery result."""

    def test_base_path_and_data_url(self) -> None:
        result = DiscoveryResult(version="v1", probe_path="/api")

        assert result.base_path == "/api/v1"
        assert result.data_url("192.168.1.50") == "http://192.168.1.50/api/v1/data"

    def test_v2_data_url(self) -> None:
        result = DiscoveryResult(version="v2", probe_path="/api/v2")

        assert result.data_url("p1.local") == "http://p1.local/api/v2/data"

    def test_serial_and_product_name(self, meter_metadata: dict[str, Any]) -> None:
        result = DiscoveryResult(version="v1", probe_path="/api/v1", device_metadata=meter_metadata)

        assert result.serial == "3c39e7aabbcc"
        assert result.product_name == "P1 meter"

    def test_product_name_falls_back_to_product_type(self) -> None:
        result = DiscoveryResult(
            version="v1", probe_path="/api", device_metadata={"product_type": "HWE-P1"}
        )

        assert result.product_name == "HWE-P1"

    def test_product_name_default(self) -> None:
        result = DiscoveryResult(version="v1", probe_path="/api")

        assert result.product_name == "P1 Meter"
        assert result.serial == "unknown"

    def test_unknown_version_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DiscoveryResult(version="v3", probe_path="/api/v3")  # type: ignore[arg-type]


class TestStableIds:
    """Stable ids depend on the sensor kind only."""

    def test_deterministic(self) -> None:
        assert stable_id_for(SensorKind.IMPORT) == stable_id_for(SensorKind.IMPORT)

    def test_distinct_per_kind(self) -> None:
        assert stable_id_for(SensorKind.IMPORT) != stable_id_for(SensorKind.EXPORT)

    def test_identity_is_hashable(self) -> None:
        identity = SensorIdentity(kind=SensorKind.EXPORT, stable_id=stable_id_for(SensorKind.EXPORT))

        assert identity in {identity}
