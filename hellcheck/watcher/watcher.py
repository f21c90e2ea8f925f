"""Hellcheck — Watcher.

Runs one self-paced probe loop per checker: probe, classify, emit a
StateMessage, wait the checker's interval, repeat. The interval starts
only after the previous probe was emitted, so a slow endpoint stretches
its own cadence and never overlaps its own requests. Loops share nothing
but the outgoing queue.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from hellcheck.config import CheckerConfig, FileConfig
from hellcheck.models import State, StateMessage
from hellcheck.utils.logger import get_logger
from hellcheck.watcher.client import ProbeClient

logger = get_logger(__name__)


class WatcherCrashed(RuntimeError):
    """Raised when a probe loop stops, which must never happen normally."""


@dataclass
class ProbeStats:
    """Counters for one checker's probe loop. Written only by that loop."""

    probes: int = 0
    up: int = 0
    down: int = 0
    last_state: Optional[State] = None
    last_probe_at: Optional[float] = None

    def record(self, state: State) -> None:
        self.probes += 1
        if state is State.UP:
            self.up += 1
        else:
            self.down += 1
        self.last_state = state
        self.last_probe_at = time.monotonic()


class Watcher:
    """Spawns and supervises the probe loops.

    Attributes:
        config: The validated configuration.
        stats: Per-checker ProbeStats, keyed by checker id.
    """

    def __init__(
        self,
        config: FileConfig,
        queue: asyncio.Queue[StateMessage],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            config: Validated configuration (read-only).
            queue: Channel to the reactor; must be unbounded or generously sized.
            transport: Optional httpx transport shared by the probe clients.
        """
        self.config = config
        self.stats: dict[str, ProbeStats] = {c.id: ProbeStats() for c in config.checkers}
        self._queue = queue
        self._transport = transport

    async def run(self) -> None:
        """Run every probe loop until cancelled.

        Never returns normally. With no checkers configured it simply
        waits for cancellation.

        Raises:
            WatcherCrashed: If any probe loop ends, with the loop's error
                as the cause.
        """
        tasks = [
            asyncio.create_task(self._probe_loop(checker), name=f"probe:{checker.id}")
            for checker in self.config.checkers
        ]
        logger.info("Watcher started %d probe loops", len(tasks))

        try:
            if not tasks:
                await asyncio.Event().wait()

            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            failed = done.pop()
            error = failed.exception()
            raise WatcherCrashed(
                f"Probe loop `{failed.get_name()}` stopped: {error!r}"
            ) from error
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _probe_loop(self, checker: CheckerConfig) -> None:
        stats = self.stats[checker.id]
        async with ProbeClient(checker, transport=self._transport) as client:
            while True:
                state = await client.probe()
                stats.record(state)
                await self._queue.put(StateMessage(checker_id=checker.id, state=state))
                await asyncio.sleep(checker.interval)


async def run(
    config: FileConfig,
    queue: asyncio.Queue[StateMessage],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Run the watcher for `config`, emitting observations into `queue`.

    Never returns normally; raises WatcherCrashed if a probe loop dies.
    """
    await Watcher(config, queue, transport=transport).run()
