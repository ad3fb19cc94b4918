"""
Pure mapper that splits one RawSample into import and export readings.

The meter reports a single signed power value: positive while importing
from the grid, negative while exporting. The mapper splits it into two
non-negative quantities, at most one of them nonzero, and pairs each with
the matching cumulative total.

This is a pure function: no side effects, no I/O, no clock. The mapping
time is passed in by the caller.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math

from p1_edge.src.models import (
    DEFAULT_VOLTAGE_V,
    MappedSample,
    RawSample,
    SensorKind,
    SensorReading,
)

PUBLISH_FLOOR: float = 0.0001
"""Smallest value the ambient light level characteristic accepts.

Only applied when publishing; readings and history keep the true 0 W.
"""


def map_sample(raw: RawSample, *, now: float) -> MappedSample:
    """Derive the import and export readings from a raw meter sample.

    Args:
        raw: The meter's instantaneous report.
        now: Unix time of the mapping, floored to whole seconds.

    Returns:
        A :class:`MappedSample` holding both readings.
    """
    timestamp = math.floor(now)
    voltage = raw.voltage_l1_v or DEFAULT_VOLTAGE_V

    return MappedSample(
        import_reading=SensorReading(
            kind=SensorKind.IMPORT,
            instantaneous_w=max(0.0, raw.active_power_w),
            cumulative_kwh=raw.total_import_kwh,
            voltage_v=voltage,
            timestamp=timestamp,
        ),
        export_reading=SensorReading(
            kind=SensorKind.EXPORT,
            instantaneous_w=max(0.0, -raw.active_power_w),
            cumulative_kwh=raw.total_export_kwh,
            voltage_v=voltage,
            timestamp=timestamp,
        ),
    )


def publish_level(watts: float) -> float:
    """Clamp *watts* to the ambient light level's strictly positive floor."""
    return max(watts, PUBLISH_FLOOR)
