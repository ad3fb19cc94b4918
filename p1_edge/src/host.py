"""
Host accessory runtime: the boundary the sensor accessories publish through.

:class:`HostRuntime` and :class:`HostAccessory` describe what the daemon
needs from an accessory-bridging host: restore accessories persisted by a
previous run, look one up by its stable id, create / register / unregister
accessories, and set named characteristics by value.

:class:`FileHostRuntime` is the bundled implementation. It keeps the
registered accessories and their latest characteristic values in a JSON
file (``accessories.json``), so sensor state survives restarts and the
next run restores the same set.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

from p1_edge.src.models import AccessoryRecord, SensorIdentity, SensorKind

logger = logging.getLogger(__name__)

STATE_FILENAME = "accessories.json"


@dataclass(frozen=True, slots=True)
class CharacteristicDef:
    """Definition of a custom (vendor-specific) characteristic.

    Attributes:
        name: Name the characteristic is updated by.
        uuid: Vendor-assigned characteristic UUID.
        fmt: Value format, e.g. ``"uint16"`` or ``"float"``.
        unit: Engineering unit string.
        perms: Permissions, e.g. ``("pr", "ev")`` for read + notify.
    """

    name: str
    uuid: str
    fmt: str
    unit: str
    perms: tuple[str, ...] = ("pr", "ev")


class HostAccessory(Protocol):
    """One accessory object owned by the host runtime."""

    @property
    def stable_id(self) -> str: ...

    def set_information(self, *, manufacturer: str, model: str, serial: str) -> None: ...

    def set_service_name(self, name: str) -> None: ...

    def ensure_characteristic(self, definition: CharacteristicDef) -> bool: ...

    def update_characteristic(self, name: str, value: float | str) -> None: ...

    def characteristic(self, name: str) -> float | str | None: ...


class HostRuntime(Protocol):
    """Accessory store and registry of the host."""

    def restored_records(self) -> list[AccessoryRecord]: ...

    def lookup(self, stable_id: str) -> HostAccessory | None: ...

    def create_accessory(self, identity: SensorIdentity, display_name: str) -> HostAccessory: ...

    def register(self, accessory: HostAccessory) -> None: ...

    def unregister(self, accessory: HostAccessory) -> None: ...


# ---------------------------------------------------------------------------
# File-backed implementation
# ---------------------------------------------------------------------------


class FileAccessory:
    """Accessory persisted by :class:`FileHostRuntime`.

    Every change is written through to the runtime's state file while the
    accessory is registered.
    """

    def __init__(
        self,
        runtime: FileHostRuntime,
        *,
        identity: SensorIdentity,
        display_name: str,
        information: dict[str, str] | None = None,
        service_name: str | None = None,
        characteristics: dict[str, Any] | None = None,
        custom_characteristics: list[CharacteristicDef] | None = None,
    ) -> None:
        self._runtime = runtime
        self.identity = identity
        self.display_name = display_name
        self.information: dict[str, str] = dict(information or {})
        self.service_name = service_name or display_name
        self.characteristics: dict[str, Any] = dict(characteristics or {})
        self.custom_characteristics: list[CharacteristicDef] = list(
            custom_characteristics or []
        )

    @property
    def stable_id(self) -> str:
        return self.identity.stable_id

    def set_information(self, *, manufacturer: str, model: str, serial: str) -> None:
        self.information = {
            "manufacturer": manufacturer,
            "model": model,
            "serial_number": serial,
        }
        self._runtime.save_if_registered(self)

    def set_service_name(self, name: str) -> None:
        self.service_name = name
        self._runtime.save_if_registered(self)

    def ensure_characteristic(self, definition: CharacteristicDef) -> bool:
        """Add *definition* unless a characteristic with its UUID exists.

        Returns:
            True when the characteristic was added.
        """
        if any(c.uuid == definition.uuid for c in self.custom_characteristics):
            return False
        self.custom_characteristics.append(definition)
        self._runtime.save_if_registered(self)
        return True

    def update_characteristic(self, name: str, value: float | str) -> None:
        if self.characteristics.get(name) == value:
            return
        self.characteristics[name] = value
        self._runtime.save_if_registered(self)

    def characteristic(self, name: str) -> float | str | None:
        return self.characteristics.get(name)

    def to_record(self) -> AccessoryRecord:
        return AccessoryRecord(identity=self.identity, display_name=self.display_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stable_id": self.identity.stable_id,
            "kind": self.identity.kind.value,
            "display_name": self.display_name,
            "information": self.information,
            "service_name": self.service_name,
            "characteristics": self.characteristics,
            "custom_characteristics": [asdict(c) for c in self.custom_characteristics],
        }


class FileHostRuntime:
    """Host runtime persisting its accessories in a JSON state file.

    Args:
        storage_path: Directory holding ``accessories.json``. Accepts
            ``str`` or ``pathlib.Path``.
    """

    def __init__(self, storage_path: str | Path) -> None:
        self.path = Path(storage_path) / STATE_FILENAME
        self._accessories: dict[str, FileAccessory] = {}

    def load(self) -> None:
        """Restore accessories from the state file, if present.

        An unreadable state file is logged and treated as empty, so the
        reconciler simply recreates the enabled sensors.
        """
        if not self.path.exists():
            logger.info("No accessory state at %s, starting empty", self.path)
            return
        try:
            data = json.loads(self.path.read_text())
            entries = data["accessories"]
            for entry in entries:
                accessory = self._from_dict(entry)
                self._accessories[accessory.stable_id] = accessory
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Ignoring unreadable accessory state %s", self.path, exc_info=True)
            self._accessories.clear()
            return
        logger.info("Restored %d accessories from %s", len(self._accessories), self.path)

    # ------------------------------------------------------------------
    # HostRuntime
    # ------------------------------------------------------------------

    def restored_records(self) -> list[AccessoryRecord]:
        return [accessory.to_record() for accessory in self._accessories.values()]

    def lookup(self, stable_id: str) -> FileAccessory | None:
        return self._accessories.get(stable_id)

    def create_accessory(self, identity: SensorIdentity, display_name: str) -> FileAccessory:
        return FileAccessory(self, identity=identity, display_name=display_name)

    def register(self, accessory: FileAccessory) -> None:
        self._accessories[accessory.stable_id] = accessory
        self._save()

    def unregister(self, accessory: FileAccessory) -> None:
        self._accessories.pop(accessory.stable_id, None)
        self._save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_if_registered(self, accessory: FileAccessory) -> None:
        if self._accessories.get(accessory.stable_id) is accessory:
            self._save()

    def _save(self) -> None:
        """Atomically rewrite the state file."""
        data = {"accessories": [a.to_dict() for a in self._accessories.values()]}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self.path)

    def _from_dict(self, entry: dict[str, Any]) -> FileAccessory:
        identity = SensorIdentity(kind=SensorKind(entry["kind"]), stable_id=entry["stable_id"])
        return FileAccessory(
            self,
            identity=identity,
            display_name=entry.get("display_name", ""),
            information=entry.get("information"),
            service_name=entry.get("service_name"),
            characteristics=entry.get("characteristics"),
            custom_characteristics=[
                CharacteristicDef(
                    name=c["name"],
                    uuid=c["uuid"],
                    fmt=c["fmt"],
                    unit=c["unit"],
                    perms=tuple(c.get("perms", ("pr", "ev"))),
                )
                for c in entry.get("custom_characteristics", [])
            ],
        )
