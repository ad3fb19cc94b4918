"""
Edge daemon entrypoint for the HomeWizard P1 meter bridge.

Loads configuration, restores the accessory store, and runs the
:class:`~p1_edge.src.scheduler.PollScheduler` until SIGTERM/SIGINT. When
discovery fails at startup the scheduler ends in state FAILED and the
daemon stays idle (no sensors, no polling) until it is signalled.

Startup failures:
- Invalid configuration values (pydantic ValidationError): logged, exit 1.
- Unreadable platform config file or invalid meter address (ConfigError):
  logged, exit 1.
- No meter IP configured (ConfigError): logged, exit 1, no polling.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Load settings through load_settings()

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime

from pydantic import ValidationError

from p1_edge.src.errors import ConfigError
from p1_edge.src.health import HealthWriter
from p1_edge.src.host import FileHostRuntime
from p1_edge.src.reconciler import desired_sensors
from p1_edge.src.scheduler import PollScheduler, SchedulerState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the edge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup.

    Args:
        settings: A BridgeSettings instance (or any object with the same attrs).
    """
    logger.info(
        "P1 edge daemon starting with config: "
        "p1_ip=%s, poll_interval_s=%s, request_timeout_s=%s, "
        "hide_power_consumption_device=%s, hide_power_return_device=%s, "
        "storage_path=%s, health_path=%s",
        settings.p1_ip,  # type: ignore[attr-defined]
        settings.poll_interval_s,  # type: ignore[attr-defined]
        settings.request_timeout_s,  # type: ignore[attr-defined]
        settings.hide_power_consumption_device,  # type: ignore[attr-defined]
        settings.hide_power_return_device,  # type: ignore[attr-defined]
        settings.storage_path,  # type: ignore[attr-defined]
        settings.health_path,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


async def run_daemon(
    *,
    scheduler: PollScheduler,
    shutdown_event: asyncio.Event,
) -> None:
    """Run *scheduler* until *shutdown_event* is set.

    A scheduler that ends in FAILED leaves the daemon idle until shutdown.

    Args:
        scheduler: The configured poll scheduler.
        shutdown_event: Event to signal graceful shutdown.
    """
    task = asyncio.create_task(scheduler.run())
    stopper = asyncio.create_task(shutdown_event.wait())

    try:
        done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            # Surface unexpected errors from the scheduler.
            task.result()
            if scheduler.state is SchedulerState.FAILED:
                logger.error("P1 meter not reachable; staying idle until shutdown")
            await stopper
        else:
            scheduler.stop()
            await task
    finally:
        stopper.cancel()
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> int:
    """Async entrypoint: load config, build components, run the scheduler.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.

    Returns:
        Process exit code.
    """
    configure_logging()

    from p1_edge.src.config import load_settings

    try:
        settings = load_settings()
    except ValidationError as err:
        logger.error("Invalid configuration: %s", err)
        return 1
    except ConfigError as err:
        logger.error("%s", err)
        return 1
    log_config_summary(settings)

    try:
        host = settings.require_host()
    except ConfigError as err:
        logger.error("%s", err)
        return 1

    host_runtime = FileHostRuntime(settings.storage_path)
    host_runtime.load()

    scheduler = PollScheduler(
        host=host,
        host_runtime=host_runtime,
        desired=desired_sensors(
            hide_import=settings.hide_power_consumption_device,
            hide_export=settings.hide_power_return_device,
        ),
        storage_path=settings.storage_path,
        poll_interval_s=settings.poll_interval_s,
        request_timeout_s=settings.request_timeout_s,
        health=HealthWriter(settings.health_path),
    )

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    await run_daemon(scheduler=scheduler, shutdown_event=shutdown_event)
    return 0


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the edge daemon."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
