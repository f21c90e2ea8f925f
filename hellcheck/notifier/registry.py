"""Hellcheck — Notifier Registry.

Maps notifier identifiers to backend instances. Built once at startup
from the validated configuration and read-only afterwards.
"""

from __future__ import annotations

from typing import Callable, Iterator, Mapping

from hellcheck.config import (
    CommandNotifierConfig,
    FileConfig,
    HipchatNotifierConfig,
    NotifierConfig,
    SlackNotifierConfig,
    TelegramNotifierConfig,
)
from hellcheck.notifier.base import Notifier
from hellcheck.notifier.command import CommandNotifier
from hellcheck.notifier.telegram_bot import TelegramNotifier
from hellcheck.notifier.webhook import HipchatNotifier, SlackNotifier
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)

_FACTORIES: dict[type, Callable[..., Notifier]] = {
    TelegramNotifierConfig: TelegramNotifier.from_config,
    SlackNotifierConfig: SlackNotifier.from_config,
    HipchatNotifierConfig: HipchatNotifier.from_config,
    CommandNotifierConfig: CommandNotifier.from_config,
}


class UnknownNotifierError(LookupError):
    """Raised when a notifier identifier has no registered backend."""

    def __init__(self, notifier_id: str) -> None:
        self.notifier_id = notifier_id
        super().__init__(f"Notifier `{notifier_id}` is not registered")


def build_notifier(config: NotifierConfig) -> Notifier:
    """Construct the backend selected by a notifier config variant.

    Raises:
        TypeError: If the config type has no backend.
    """
    try:
        factory = _FACTORIES[type(config)]
    except KeyError:
        raise TypeError(f"No notifier backend for {type(config).__name__}") from None
    return factory(config)


class NotifierRegistry:
    """Identifier → Notifier mapping.

    Attributes:
        notifiers: Read-only view of the registered backends.
    """

    def __init__(self, notifiers: Mapping[str, Notifier]) -> None:
        self._notifiers = dict(notifiers)

    @classmethod
    def from_config(cls, config: FileConfig) -> "NotifierRegistry":
        """Build one backend per declared notifier.

        Args:
            config: The validated configuration.

        Returns:
            A populated NotifierRegistry.
        """
        notifiers = {entry.id: build_notifier(entry.config) for entry in config.notifiers}
        for notifier_id, notifier in notifiers.items():
            logger.debug("Registered notifier %s → %r", notifier_id, notifier)
        return cls(notifiers)

    @property
    def notifiers(self) -> Mapping[str, Notifier]:
        return dict(self._notifiers)

    def get(self, notifier_id: str) -> Notifier:
        """Resolve a notifier by identifier.

        Raises:
            UnknownNotifierError: If no backend is registered under the id.
        """
        try:
            return self._notifiers[notifier_id]
        except KeyError:
            raise UnknownNotifierError(notifier_id) from None

    async def close(self) -> None:
        """Close every backend, logging (not raising) individual failures."""
        for notifier_id, notifier in self._notifiers.items():
            try:
                await notifier.close()
            except Exception as e:
                logger.warning("Failed to close notifier %s: %s", notifier_id, e)

    def __contains__(self, notifier_id: object) -> bool:
        return notifier_id in self._notifiers

    def __iter__(self) -> Iterator[str]:
        return iter(self._notifiers)

    def __len__(self) -> int:
        return len(self._notifiers)
