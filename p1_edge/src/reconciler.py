"""
Accessory reconciler: decides which sensor accessories to create, restore,
or remove at startup.

Pure decision logic over already-known data. The host runtime restores the
accessories persisted by a previous run; configuration says which sensors
are enabled. For every sensor kind, in fixed order (import before export):

======== ================ =========================
enabled  restored record  intent
======== ================ =========================
yes      yes              BindExisting
yes      no               Create
no       yes              Remove
no       no               (none)
======== ================ =========================

The caller executes the intents against the host runtime.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable

from p1_edge.src.models import (
    AccessoryRecord,
    BindExisting,
    Create,
    Intent,
    Remove,
    SensorIdentity,
    SensorKind,
    stable_id_for,
)


def sensor_identity(kind: SensorKind) -> SensorIdentity:
    """Return the stable identity for *kind*."""
    return SensorIdentity(kind=kind, stable_id=stable_id_for(kind))


def desired_sensors(
    *,
    hide_import: bool = False,
    hide_export: bool = False,
) -> frozenset[SensorIdentity]:
    """Return the identities enabled by configuration."""
    hidden = {SensorKind.IMPORT: hide_import, SensorKind.EXPORT: hide_export}
    return frozenset(sensor_identity(kind) for kind in SensorKind if not hidden[kind])


def reconcile(
    desired: Iterable[SensorIdentity],
    restored: Iterable[AccessoryRecord],
) -> list[Intent]:
    """Decide create / bind / remove for every sensor kind.

    Records whose identity is not one of the known sensor kinds are left
    alone. Records not present in the host store never match.

    Args:
        desired: Identities enabled by configuration.
        restored: Accessory records restored by the host runtime.

    Returns:
        Intents in sensor-kind order.
    """
    enabled_ids = {identity.stable_id for identity in desired}
    by_id = {
        record.identity.stable_id: record
        for record in restored
        if record.exists_in_host_store
    }

    intents: list[Intent] = []
    for kind in SensorKind:
        identity = sensor_identity(kind)
        record = by_id.get(identity.stable_id)
        enabled = identity.stable_id in enabled_ids

        if enabled and record is not None:
            intents.append(
                BindExisting(
                    identity=identity,
                    record=record.model_copy(update={"is_enabled_by_config": True}),
                )
            )
        elif enabled:
            intents.append(Create(identity=identity))
        elif record is not None:
            intents.append(
                Remove(record=record.model_copy(update={"is_enabled_by_config": False}))
            )
    return intents
