"""Hellcheck — Notifier Capability.

Every backend implements one coroutine, notify(), which performs a
single delivery attempt and raises DeliveryError on failure. Backends
hold no state beyond what their config fixed at construction time.
"""

from __future__ import annotations

import abc

from hellcheck.models import Notification

# ── Constants ─────────────────────────────────────────────
DEFAULT_TIMEOUT_SECONDS = 10.0


class DeliveryError(Exception):
    """Raised when a notifier backend fails to deliver a notification."""


class Notifier(abc.ABC):
    """Base class for notifier backends."""

    @abc.abstractmethod
    async def notify(self, notification: Notification) -> None:
        """Deliver one state-change notification.

        Args:
            notification: The state change to report.

        Raises:
            DeliveryError: If the backend rejected or failed the delivery.
        """

    async def close(self) -> None:
        """Release backend resources (HTTP clients, sessions)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
