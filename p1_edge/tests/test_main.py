"""
Unit tests for the edge daemon entrypoint.

Tests verify:
- configure_logging() emits one JSON object per record.
- run_daemon() stops the scheduler when the shutdown event fires.
- A scheduler that ends in FAILED leaves the daemon idle until shutdown.
- async_main() exits 1 when no meter IP is configured, the address is
  malformed, the platform config file is unreadable, or config is invalid.
- Startup logs a config summary.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from p1_edge.src.main import async_main, configure_logging, log_config_summary, run_daemon
from p1_edge.src.scheduler import SchedulerState

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FakeScheduler:
    """Scheduler stand-in: runs until stop() or finishes in a fixed state."""

    def __init__(self, *, final_state: SchedulerState | None = None) -> None:
        self.state = SchedulerState.IDLE
        self._final_state = final_state
        self._stopped = asyncio.Event()
        self.stop_called = False

    async def run(self) -> None:
        if self._final_state is not None:
            self.state = self._final_state
            return
        self.state = SchedulerState.POLLING
        await self._stopped.wait()
        self.state = SchedulerState.STOPPED

    def stop(self) -> None:
        self.stop_called = True
        self._stopped.set()


@pytest.fixture()
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("_restore_root_logger")
class TestConfigureLogging:
    """Records are written to stderr as JSON."""

    def test_json_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging()

        logging.getLogger("p1_edge.test").info("hello %s", "meter")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "p1_edge.test"
        assert entry["msg"] == "hello meter"
        assert "ts" in entry

    def test_exception_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging()

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logging.getLogger("p1_edge.test").error("failed", exc_info=True)

        entry = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert "RuntimeError: boom" in entry["exception"]


class TestLogConfigSummary:
    """Startup logs every relevant setting."""

    def test_summary_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        settings = MagicMock(
            p1_ip="192.168.1.50",
            poll_interval_s=10,
            request_timeout_s=5.0,
            hide_power_consumption_device=False,
            hide_power_return_device=True,
            storage_path="/data",
            health_path="/data/health.json",
        )

        with caplog.at_level(logging.INFO):
            log_config_summary(settings)

        assert "p1_ip=192.168.1.50" in caplog.text
        assert "hide_power_return_device=True" in caplog.text


# ---------------------------------------------------------------------------
# run_daemon
# ---------------------------------------------------------------------------


class TestRunDaemon:
    """The daemon runs the scheduler until shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_stops_scheduler(self) -> None:
        scheduler = _FakeScheduler()
        shutdown_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, shutdown_event.set)

        await asyncio.wait_for(
            run_daemon(scheduler=scheduler, shutdown_event=shutdown_event),  # type: ignore[arg-type]
            timeout=2.0,
        )

        assert scheduler.stop_called is True
        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_failed_scheduler_idles_until_shutdown(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        scheduler = _FakeScheduler(final_state=SchedulerState.FAILED)
        shutdown_event = asyncio.Event()
        daemon = asyncio.create_task(
            run_daemon(scheduler=scheduler, shutdown_event=shutdown_event)  # type: ignore[arg-type]
        )

        await asyncio.sleep(0.02)
        assert not daemon.done()

        shutdown_event.set()
        await asyncio.wait_for(daemon, timeout=2.0)

        assert scheduler.stop_called is False
        assert "staying idle" in caplog.text

    @pytest.mark.asyncio
    async def test_scheduler_error_propagates(self) -> None:
        scheduler = MagicMock()

        async def _boom() -> None:
            raise RuntimeError("scheduler crashed")

        scheduler.run = _boom

        with pytest.raises(RuntimeError, match="scheduler crashed"):
            await run_daemon(scheduler=scheduler, shutdown_event=asyncio.Event())


# ---------------------------------------------------------------------------
# async_main
# ---------------------------------------------------------------------------


class TestAsyncMain:
    """Startup failures exit with code 1 before any polling."""

    @pytest.mark.asyncio
    async def test_missing_ip_exits_1(self, caplog: pytest.LogCaptureFixture) -> None:
        with (
            patch("p1_edge.src.main.configure_logging"),
            patch("p1_edge.src.main.PollScheduler") as mock_scheduler_cls,
        ):
            code = await async_main()

        assert code == 1
        mock_scheduler_cls.assert_not_called()
        assert "IP address" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_config_exits_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("P1_IP", "192.168.1.50")
        monkeypatch.setenv("POLL_INTERVAL_S", "0")

        with (
            patch("p1_edge.src.main.configure_logging"),
            patch("p1_edge.src.main.PollScheduler") as mock_scheduler_cls,
        ):
            code = await async_main()

        assert code == 1
        mock_scheduler_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_address_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("P1_IP", "192.168.1.50:notaport")

        with (
            patch("p1_edge.src.main.configure_logging"),
            patch("p1_edge.src.main.PollScheduler") as mock_scheduler_cls,
        ):
            code = await async_main()

        assert code == 1
        mock_scheduler_cls.assert_not_called()
        assert "Invalid P1 meter address" in caplog.text

    @pytest.mark.asyncio
    async def test_unreadable_platform_config_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("PLATFORM_CONFIG", str(tmp_path / "missing.json"))

        with (
            patch("p1_edge.src.main.configure_logging"),
            patch("p1_edge.src.main.PollScheduler") as mock_scheduler_cls,
        ):
            code = await async_main()

        assert code == 1
        mock_scheduler_cls.assert_not_called()
