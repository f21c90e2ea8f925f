"""Hellcheck — Watcher Package.

Components:
  - client: single-probe HTTP client and Up/Down classification
  - watcher: per-checker self-paced probe loops
"""

from hellcheck.watcher.client import ProbeClient, build_authorization_header
from hellcheck.watcher.watcher import ProbeStats, Watcher, WatcherCrashed, run

__all__ = [
    "ProbeClient",
    "ProbeStats",
    "Watcher",
    "WatcherCrashed",
    "build_authorization_header",
    "run",
]
