"""
Poll scheduler: discovery once, reconciliation once, then the poll loop.

State machine::

    IDLE -> DISCOVERING -> RECONCILING -> POLLING -> STOPPED
                 |
                 +-> FAILED   (every discovery probe failed; no sensors)

Polling runs one cycle immediately, then one cycle per tick at a fixed
rate. Cycles are strictly serialized: a new one never starts while the
previous one is still waiting on the meter. A cycle that overruns its
tick skips the missed ticks rather than catching up.

A cycle is fetch -> map -> dispatch. Any fetch failure skips the whole
cycle (no sensor is updated) and is logged; the next tick fires on
schedule. Errors from dispatch never escape the loop.

:meth:`PollScheduler.stop` is the only cancellation: it ends the loop
after the in-flight cycle, which completes or times out on its own bound.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Sample subscriber errors no longer fail the cycle

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from p1_edge.src.accessories import DISPLAY_NAMES, SensorAccessory
from p1_edge.src.discovery import discover
from p1_edge.src.errors import CycleFetchError, DeviceUnreachable
from p1_edge.src.history import HistoryLog, history_filename
from p1_edge.src.mapper import map_sample
from p1_edge.src.models import BindExisting, Remove
from p1_edge.src.poller import Poller
from p1_edge.src.reconciler import reconcile

if TYPE_CHECKING:
    from p1_edge.src.health import HealthWriter
    from p1_edge.src.host import HostRuntime
    from p1_edge.src.models import DiscoveryResult, Intent, MappedSample, SensorIdentity

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle states of :class:`PollScheduler`."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    RECONCILING = "reconciling"
    POLLING = "polling"
    FAILED = "failed"
    STOPPED = "stopped"


class PollScheduler:
    """Owns the only long-lived timer of the daemon.

    Args:
        host: Meter IP address or hostname (already validated).
        host_runtime: Accessory store the intents are executed against.
        desired: Sensor identities enabled by configuration.
        storage_path: Directory for the per-sensor history logs.
        poll_interval_s: Seconds between cycle starts.
        request_timeout_s: Timeout for every HTTP request to the meter.
        health: HealthWriter instance, or None to skip health writes.
        on_sample: Optional coroutine called with each dispatched sample.
        clock: Wall clock used to timestamp readings.
    """

    def __init__(
        self,
        *,
        host: str,
        host_runtime: HostRuntime,
        desired: Iterable[SensorIdentity],
        storage_path: str | Path,
        poll_interval_s: float = 10.0,
        request_timeout_s: float = 5.0,
        health: HealthWriter | None = None,
        on_sample: Callable[[MappedSample], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._host_runtime = host_runtime
        self._desired = frozenset(desired)
        self._storage_path = Path(storage_path)
        self._poll_interval_s = poll_interval_s
        self._request_timeout_s = request_timeout_s
        self._health = health
        self._on_sample = on_sample
        self._clock = clock

        self._state = SchedulerState.IDLE
        self._stop_event = asyncio.Event()
        self._discovery: DiscoveryResult | None = None
        self._sensors: list[SensorAccessory] = []

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def discovery(self) -> DiscoveryResult | None:
        return self._discovery

    @property
    def sensors(self) -> list[SensorAccessory]:
        return list(self._sensors)

    def stop(self) -> None:
        """Stop polling after the in-flight cycle (if any) finishes."""
        logger.info("Poll scheduler stop requested")
        self._stop_event.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Discover, reconcile, then poll until :meth:`stop` is called.

        Returns early in state FAILED when discovery fails.
        """
        self._set_state(SchedulerState.DISCOVERING)
        try:
            discovery = await discover(self._host, timeout_s=self._request_timeout_s)
        except DeviceUnreachable as err:
            logger.error("Discovery failed, no sensors will be created: %s", err)
            self._set_state(SchedulerState.FAILED)
            return
        self._discovery = discovery

        self._set_state(SchedulerState.RECONCILING)
        intents = reconcile(self._desired, self._host_runtime.restored_records())

        async with contextlib.AsyncExitStack() as stack:
            self._sensors = await self._apply_intents(intents, discovery, stack)
            self._set_state(SchedulerState.POLLING)
            poller = Poller(
                host=self._host,
                discovery=discovery,
                timeout_s=self._request_timeout_s,
            )
            await self._poll_loop(poller)

        self._sensors = []
        self._set_state(SchedulerState.STOPPED)

    async def _apply_intents(
        self,
        intents: list[Intent],
        discovery: DiscoveryResult,
        stack: contextlib.AsyncExitStack,
    ) -> list[SensorAccessory]:
        """Execute *intents* against the host runtime and build the sensors."""
        sensors: list[SensorAccessory] = []
        for intent in intents:
            if isinstance(intent, Remove):
                identity = intent.record.identity
                accessory = self._host_runtime.lookup(identity.stable_id)
                if accessory is not None:
                    self._host_runtime.unregister(accessory)
                logger.info("%s removed (hidden by configuration)", DISPLAY_NAMES[identity.kind])
                continue

            identity = intent.identity
            name = DISPLAY_NAMES[identity.kind]
            accessory = None
            if isinstance(intent, BindExisting):
                accessory = self._host_runtime.lookup(identity.stable_id)
                if accessory is not None:
                    logger.info("%s restored from host store", name)
            register = accessory is None
            if register:
                accessory = self._host_runtime.create_accessory(identity, name)

            history = await stack.enter_async_context(
                HistoryLog(self._storage_path / history_filename(identity))
            )
            sensors.append(
                SensorAccessory(
                    kind=identity.kind,
                    accessory=accessory,
                    history=history,
                    discovery=discovery,
                )
            )
            if register:
                self._host_runtime.register(accessory)
                logger.info("%s added as accessory", name)
        return sensors

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    async def _poll_loop(self, poller: Poller) -> None:
        """Run cycles at a fixed rate until the stop event is set."""
        logger.info(
            "Poll loop started (interval=%ss, url=%s)", self._poll_interval_s, poller.url
        )
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stop_event.is_set():
            await self.run_cycle(poller)

            next_tick += self._poll_interval_s
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // self._poll_interval_s) + 1
                logger.warning("Poll cycle overran its interval, skipping %d tick(s)", missed)
                next_tick += missed * self._poll_interval_s

            # Use wait with timeout so we can check shutdown between ticks
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
        logger.info("Poll loop stopped")

    async def run_cycle(self, poller: Poller) -> bool:
        """Execute a single fetch-map-dispatch cycle.

        Catches all exceptions so that the poll loop is never broken.

        Returns:
            True if a sample was dispatched, False if the cycle was skipped.
        """
        try:
            raw = await poller.poll()
        except CycleFetchError as err:
            logger.error("Poll cycle skipped: %s", err)
            self._record_cycle(ok=False)
            return False
        except Exception:
            logger.error("Poll cycle skipped: unexpected fetch error", exc_info=True)
            self._record_cycle(ok=False)
            return False

        try:
            mapped = map_sample(raw, now=self._clock())
            for sensor in self._sensors:
                await sensor.beat(mapped.for_kind(sensor.kind))
        except Exception:
            logger.error("Poll cycle dispatch error", exc_info=True)
            self._record_cycle(ok=False)
            return False

        self._record_cycle(ok=True)

        # Sensors are already updated; subscriber errors leave the cycle successful.
        if self._on_sample is not None:
            try:
                await self._on_sample(mapped)
            except Exception:
                logger.error("Sample subscriber error", exc_info=True)
        return True

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def _set_state(self, state: SchedulerState) -> None:
        logger.debug("Scheduler state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._health is not None:
            try:
                self._health.set_state(state.value)
            except Exception:
                logger.warning("Failed to write health file", exc_info=True)

    def _record_cycle(self, *, ok: bool) -> None:
        if self._health is None:
            return
        try:
            if ok:
                self._health.record_success()
            else:
                self._health.record_failure()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
