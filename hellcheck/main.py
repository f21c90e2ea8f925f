"""Hellcheck — Main Orchestrator.

Wires the engine together: config → notifier registry → queue →
reactor task + watcher task, plus an APScheduler heartbeat that logs a
health summary. The process exits 1 as soon as the watcher or the
reactor dies, and 0 on SIGINT/SIGTERM.

Usage:
    hellcheck watch -f hellcheck.yml
    hellcheck test -f hellcheck.yml --notify
    python -m hellcheck watch -f hellcheck.yml
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import signal
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hellcheck import __version__
from hellcheck.config import ConfigError, FileConfig, load_config
from hellcheck.models import Notification, State, StateMessage
from hellcheck.notifier.registry import NotifierRegistry
from hellcheck.reactor import Reactor
from hellcheck.utils.health import HealthMonitor
from hellcheck.utils.logger import get_logger, set_console_level
from hellcheck.validator import ConfigValidationError
from hellcheck.watcher.client import ProbeClient
from hellcheck.watcher.watcher import Watcher

logger = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────
DEFAULT_STATUS_INTERVAL_SECONDS = 60
TEST_CHECKER_ID = "hellcheck-test"
TEST_NOTIFY_TIMEOUT_SECONDS = 30.0


class HellcheckApp:
    """Runs the watcher and reactor until stopped or until one of them dies.

    Attributes:
        config: The validated configuration.
        registry: Notifier backends.
        reactor: The state-transition engine.
        watcher: The probe-loop supervisor.
        health: HealthMonitor for the heartbeat.
    """

    def __init__(
        self,
        config: FileConfig,
        status_interval: int = DEFAULT_STATUS_INTERVAL_SECONDS,
        registry: Optional[NotifierRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Build the engine components. Call run() to start them.

        Args:
            config: Validated configuration.
            status_interval: Heartbeat period in seconds; 0 disables it.
            registry: Pre-built notifier registry (built from config if None).
            transport: Optional httpx transport for the probe clients.
        """
        self.config = config
        self.status_interval = max(0, int(status_interval))
        self.registry = registry if registry is not None else NotifierRegistry.from_config(config)
        self.queue: asyncio.Queue[StateMessage] = asyncio.Queue()
        self.reactor = Reactor(config, self.registry)
        self.watcher = Watcher(config, self.queue, transport=transport)
        self.health = HealthMonitor(config)
        self._stop = asyncio.Event()
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def run(self) -> int:
        """Run until stop() or a fatal engine error.

        Returns:
            Process exit status: 0 after stop(), 1 after a fatal error.
        """
        reactor_task = self.reactor.spawn(self.queue)
        watcher_task = asyncio.create_task(self.watcher.run(), name="watcher")
        stop_task = asyncio.create_task(self._stop.wait(), name="stop")
        tasks = {reactor_task, watcher_task, stop_task}
        self._start_heartbeat()

        exit_code = 0
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            if stop_task in done:
                logger.info("Stop requested")
            else:
                exit_code = 1
                for task in done:
                    error = task.exception()
                    logger.error(
                        "ERROR: looks like hellcheck crashed (%s): %r",
                        task.get_name(), error,
                        exc_info=error,
                    )
        finally:
            await self._shutdown(tasks)
        return exit_code

    def stop(self) -> None:
        """Request a graceful stop."""
        self._stop.set()

    def _start_heartbeat(self) -> None:
        if not self.status_interval:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._log_status,
            IntervalTrigger(seconds=self.status_interval),
            id="status",
            max_instances=1,
            name=f"Status heartbeat (every {self.status_interval}s)",
        )
        self._scheduler.start()

    async def _log_status(self) -> None:
        status = self.health.get_status(self.watcher.stats, self.reactor.stats)
        logger.info(self.health.format_status(status))
        if status["stale_checkers"]:
            logger.warning(
                "Probe loops look stalled: %s", ", ".join(status["stale_checkers"]),
            )

    async def _shutdown(self, tasks: set[asyncio.Task]) -> None:
        logger.info("═══ Shutting down ═══")
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self.registry.close()
        logger.info("Shutdown complete")


# ═══════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════


async def run_watch(config: FileConfig, status_interval: int) -> int:
    """Start the engine and block until a signal or a fatal error."""
    app = HellcheckApp(config, status_interval=status_interval)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, app.stop)

    logger.info("═══ Hellcheck %s watching %d checkers ═══", __version__, len(config.checkers))
    for checker in config.checkers:
        logger.info(
            "  %s → %s every %.1fs (notifiers: %s)",
            checker.id, checker.url, checker.interval,
            ", ".join(checker.notifiers) or "<none>",
        )
    return await app.run()


async def run_test(
    config: FileConfig,
    notify: bool = False,
    registry: Optional[NotifierRegistry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Probe every checker once and optionally fire a test notification.

    Args:
        config: Validated configuration.
        notify: Also send a test notification through every notifier.
        registry: Pre-built registry (built from config when None).
        transport: Optional httpx transport for the probe clients.

    Returns:
        0 when every checker is Up and every test delivery succeeded, else 1.
    """
    async def _probe(checker) -> State:  # noqa: ANN001
        async with ProbeClient(checker, transport=transport) as client:
            return await client.probe()

    states = await asyncio.gather(*(_probe(c) for c in config.checkers))
    ok = True
    for checker, state in zip(config.checkers, states):
        if state is State.UP:
            logger.info("  ✅ %s is Up (%s)", checker.id, checker.url)
        else:
            ok = False
            logger.error("  ❌ %s is Down (%s)", checker.id, checker.url)

    if not notify:
        return 0 if ok else 1

    if registry is None:
        registry = NotifierRegistry.from_config(config)
    notification = Notification(
        checker_id=TEST_CHECKER_ID,
        checker_url="test notification",
        state=State.UP,
    )
    try:
        for notifier_id in registry:
            try:
                await asyncio.wait_for(
                    registry.get(notifier_id).notify(notification),
                    timeout=TEST_NOTIFY_TIMEOUT_SECONDS,
                )
                logger.info("  ✅ notifier %s delivered", notifier_id)
            except Exception as e:
                ok = False
                logger.error("  ❌ notifier %s failed: %s", notifier_id, e)
    finally:
        await registry.close()

    return 0 if ok else 1


# ═══════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hellcheck", description="HTTP health-check watchdog with notifications",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-f", "--file", required=True, help="Path to YAML config file")
    common.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG/INFO/WARNING/ERROR). Defaults to env HELLCHECK_LOG_LEVEL or INFO",
    )
    sub = p.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", parents=[common], help="Start watcher")
    watch.add_argument(
        "--status-interval",
        type=int,
        default=None,
        help="Heartbeat interval seconds. Defaults to env HELLCHECK_STATUS_INTERVAL or 60. Set 0 to disable.",
    )

    test = sub.add_parser("test", parents=[common], help="Test checkers and notifiers")
    test.add_argument(
        "--notify", action="store_true", help="Send a test notification through every notifier",
    )
    return p


def _resolve_status_interval(value: Optional[int]) -> int:
    if value is not None:
        return max(0, value)
    try:
        return max(0, int(os.environ.get("HELLCHECK_STATUS_INTERVAL") or DEFAULT_STATUS_INTERVAL_SECONDS))
    except ValueError:
        return DEFAULT_STATUS_INTERVAL_SECONDS


def main(argv: Optional[list[str]] = None) -> int:
    """Application entry point. Returns the process exit status."""
    args = build_arg_parser().parse_args(argv)
    if args.log_level or os.environ.get("HELLCHECK_LOG_LEVEL"):
        set_console_level(args.log_level or os.environ.get("HELLCHECK_LOG_LEVEL"))

    try:
        config = load_config(args.file)
    except (FileNotFoundError, ConfigError, ConfigValidationError) as e:
        logger.error("ERROR: %s", e)
        return 1

    try:
        if args.command == "watch":
            return asyncio.run(run_watch(config, _resolve_status_interval(args.status_interval)))
        return asyncio.run(run_test(config, notify=args.notify))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
