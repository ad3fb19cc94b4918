"""
Sensor accessories: the side-effecting end of each poll cycle.

Both derived sensors are served by one class tagged with a
:class:`~p1_edge.src.models.SensorKind`; they differ only in which
reading they receive and in the export sensor's supplementary Eve
characteristics.

``beat(reading)`` per cycle:
1. Publishes the power to ``CurrentAmbientLightLevel`` (a light sensor
   characteristic reused so stock home apps show the wattage), floored at
   :data:`~p1_edge.src.mapper.PUBLISH_FLOOR` because that characteristic
   rejects zero. The floor is a protocol constraint, not a signal.
2. Export sensor only: publishes raw watts (unfloored), total export in
   kWh, and voltage on the Eve Energy characteristics.
3. Appends ``{time, power}`` to the sensor's history log; the export
   sensor adds ``energy`` in kWh.

``beat`` never raises: host and history failures are logged.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from p1_edge.src.history import HistoryEntry
from p1_edge.src.host import CharacteristicDef
from p1_edge.src.mapper import publish_level
from p1_edge.src.models import SensorKind

if TYPE_CHECKING:
    from p1_edge.src.history import HistoryRecorder
    from p1_edge.src.host import HostAccessory
    from p1_edge.src.models import DiscoveryResult, SensorReading

logger = logging.getLogger(__name__)

MANUFACTURER = "HomeWizard"
AMBIENT_LIGHT_LEVEL = "CurrentAmbientLightLevel"

EVE_CONSUMPTION = CharacteristicDef(
    name="Consumption",
    uuid="E863F10D-079E-48FF-8F27-9C2605A29F52",
    fmt="uint16",
    unit="W",
)
EVE_TOTAL_CONSUMPTION = CharacteristicDef(
    name="Total Consumption",
    uuid="E863F10C-079E-48FF-8F27-9C2605A29F52",
    fmt="float",
    unit="kWh",
)
EVE_VOLTAGE = CharacteristicDef(
    name="Voltage",
    uuid="E863F10A-079E-48FF-8F27-9C2605A29F52",
    fmt="float",
    unit="V",
)
EXPORT_CHARACTERISTICS: tuple[CharacteristicDef, ...] = (
    EVE_CONSUMPTION,
    EVE_TOTAL_CONSUMPTION,
    EVE_VOLTAGE,
)

DISPLAY_NAMES: dict[SensorKind, str] = {
    SensorKind.IMPORT: "Power Consumption",
    SensorKind.EXPORT: "Power Return",
}

_SERIAL_SUFFIXES: dict[SensorKind, str] = {
    SensorKind.IMPORT: "consumption",
    SensorKind.EXPORT: "power-return",
}

_UINT16_MAX = 0xFFFF


class SensorAccessory:
    """One derived sensor bound to a host accessory and a history log.

    Construction configures the accessory: information (manufacturer,
    model from the device metadata, serial with a per-kind suffix), the
    service name, and for the export sensor the Eve characteristics that
    are not yet present.

    Args:
        kind: Which derived sensor this is.
        accessory: The host accessory to publish to.
        history: Append-only history sink for this sensor.
        discovery: Discovery result supplying device metadata.
    """

    def __init__(
        self,
        *,
        kind: SensorKind,
        accessory: HostAccessory,
        history: HistoryRecorder,
        discovery: DiscoveryResult,
    ) -> None:
        self.kind = kind
        self.accessory = accessory
        self._history = history

        accessory.set_information(
            manufacturer=MANUFACTURER,
            model=discovery.product_name,
            serial=f"{discovery.serial}-{_SERIAL_SUFFIXES[kind]}",
        )
        accessory.set_service_name(DISPLAY_NAMES[kind])
        if kind is SensorKind.EXPORT:
            for definition in EXPORT_CHARACTERISTICS:
                if accessory.ensure_characteristic(definition):
                    logger.debug("Added characteristic %s (%s)", definition.name, definition.uuid)

    async def beat(self, reading: SensorReading) -> None:
        """Publish *reading* and append it to the history log. Never raises."""
        watts = reading.instantaneous_w
        try:
            self.accessory.update_characteristic(AMBIENT_LIGHT_LEVEL, publish_level(watts))
            if self.kind is SensorKind.EXPORT:
                self.accessory.update_characteristic(
                    EVE_CONSUMPTION.name, min(round(watts), _UINT16_MAX)
                )
                self.accessory.update_characteristic(
                    EVE_TOTAL_CONSUMPTION.name, reading.cumulative_kwh
                )
                self.accessory.update_characteristic(EVE_VOLTAGE.name, reading.voltage_v)
        except Exception:
            logger.warning(
                "Failed to publish %s characteristics", self.kind.value, exc_info=True
            )

        try:
            await self._history.add_entry(self._history_entry(reading))
        except Exception:
            logger.warning("Failed to append %s history entry", self.kind.value, exc_info=True)

        logger.debug(
            "[%s] %sW, %skWh, %sV",
            self.kind.value,
            watts,
            reading.cumulative_kwh,
            reading.voltage_v,
        )

    def _history_entry(self, reading: SensorReading) -> HistoryEntry:
        if self.kind is SensorKind.EXPORT:
            return HistoryEntry(
                time=reading.timestamp,
                power=reading.instantaneous_w,
                energy=reading.cumulative_kwh,
            )
        return HistoryEntry(time=reading.timestamp, power=reading.instantaneous_w)
