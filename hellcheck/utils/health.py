"""Hellcheck — Health Monitoring.

Builds an operator-facing status snapshot from the counters the watcher
and reactor keep for themselves: uptime, memory, probe volume, messages
processed, transitions and delivery outcomes. Never touches the
reactor's state table.

Usage:
    monitor = HealthMonitor(config)
    status = monitor.get_status(watcher.stats, reactor.stats)
    logger.info(monitor.format_status(status))
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Mapping

from hellcheck.config import FileConfig
from hellcheck.reactor import ReactorStats
from hellcheck.utils.logger import get_logger
from hellcheck.watcher.watcher import ProbeStats

logger = get_logger(__name__)

# A checker is stale when its last probe is older than this many
# intervals plus one probe timeout.
STALE_INTERVALS = 3


class HealthMonitor:
    """Aggregates runtime counters into a status dict.

    Attributes:
        config: The validated configuration.
        start_time: Monotonic timestamp of app start.
    """

    def __init__(self, config: FileConfig) -> None:
        self.config = config
        self.start_time = time.monotonic()
        self._start_datetime = datetime.now()

    def get_status(
        self,
        probe_stats: Mapping[str, ProbeStats],
        reactor_stats: ReactorStats,
    ) -> dict[str, Any]:
        """Get current process health.

        Args:
            probe_stats: Watcher.stats.
            reactor_stats: Reactor.stats.

        Returns:
            Dict with uptime, memory, probe totals, reactor counters and
            the ids of checkers whose loops look stalled.
        """
        now = time.monotonic()
        uptime_s = now - self.start_time

        stale: list[str] = []
        for checker in self.config.checkers:
            stats = probe_stats.get(checker.id)
            if stats is None:
                continue
            last = stats.last_probe_at if stats.last_probe_at is not None else self.start_time
            limit = checker.interval * STALE_INTERVALS + checker.timeout
            if now - last > limit:
                stale.append(checker.id)

        return {
            "uptime": self._format_uptime(uptime_s),
            "uptime_seconds": uptime_s,
            "started_at": self._start_datetime.strftime("%Y-%m-%d %H:%M"),
            "memory_mb": self._get_memory_mb(),
            "checkers": len(self.config.checkers),
            "probes": sum(s.probes for s in probe_stats.values()),
            "probes_down": sum(s.down for s in probe_stats.values()),
            "messages": reactor_stats.messages,
            "transitions": reactor_stats.transitions,
            "deliveries": reactor_stats.deliveries,
            "delivery_failures": reactor_stats.delivery_failures,
            "stale_checkers": stale,
        }

    @staticmethod
    def format_status(status: Mapping[str, Any]) -> str:
        """One-line summary suitable for the heartbeat log."""
        line = (
            f"alive: uptime={status['uptime']} rss={status['memory_mb']:.1f}MB "
            f"checkers={status['checkers']} probes={status['probes']} "
            f"down={status['probes_down']} messages={status['messages']} "
            f"transitions={status['transitions']} delivered={status['deliveries']} "
            f"failed={status['delivery_failures']}"
        )
        if status["stale_checkers"]:
            line += f" stale={','.join(status['stale_checkers'])}"
        return line

    def _get_memory_mb(self) -> float:
        """Get current process RSS memory in MB."""
        try:
            # /proc/self/status is most reliable on Linux
            with open("/proc/self/status") as f:
                for line in f:
                    if line.startswith("VmRSS:"):
                        return int(line.split()[1]) / 1024  # kB → MB
        except (FileNotFoundError, ValueError, IndexError):
            pass

        try:
            import resource
            usage = resource.getrusage(resource.RUSAGE_SELF)
            return usage.ru_maxrss / 1024  # kB → MB on Linux
        except (ImportError, AttributeError):
            return 0.0

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format seconds into human-readable uptime."""
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        if hours >= 24:
            days = hours // 24
            hours = hours % 24
            return f"{days}d {hours}h {mins}m"
        if hours:
            return f"{hours}h {mins}m"
        return f"{mins}m"
