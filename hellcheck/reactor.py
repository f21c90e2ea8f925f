"""Hellcheck — Reactor.

The single consumer of probe observations. It privately owns the state
table (checker id → State), detects transitions and dispatches them to
the checker's notifiers in configured order. Messages are processed
strictly one at a time, so read-then-write on the table needs no lock.

Every checker starts as Up. A delivery failure is logged and isolated to
that one notifier call; an identifier missing from the config or the
registry is a fatal consistency error and ends the reactor task.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from hellcheck.config import CheckerConfig, FileConfig
from hellcheck.models import Notification, State, StateMessage
from hellcheck.notifier.registry import NotifierRegistry
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────
DEFAULT_NOTIFY_TIMEOUT_SECONDS = 30.0


class UnknownCheckerError(LookupError):
    """Raised when a StateMessage names a checker missing from the config."""

    def __init__(self, checker_id: str) -> None:
        self.checker_id = checker_id
        super().__init__(f"Checker `{checker_id}` is not declared")


@dataclass
class ReactorStats:
    """Counters maintained by the reactor. Contains no per-checker state."""

    messages: int = 0
    transitions: int = 0
    deliveries: int = 0
    delivery_failures: int = 0


class Reactor:
    """Sequential state-transition engine.

    Attributes:
        config: The validated configuration.
        registry: Notifier backends keyed by identifier.
        stats: Processing counters.
    """

    def __init__(
        self,
        config: FileConfig,
        registry: NotifierRegistry,
        notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the reactor with every checker seeded Up.

        Args:
            config: Validated configuration (read-only).
            registry: Notifier registry built from the same config.
            notify_timeout: Upper bound in seconds for one notify() call.
        """
        self.config = config
        self.registry = registry
        self.notify_timeout = notify_timeout
        self.stats = ReactorStats()
        self._states: dict[str, State] = {c.id: State.UP for c in config.checkers}

    def spawn(self, queue: asyncio.Queue[StateMessage]) -> asyncio.Task[None]:
        """Run this reactor on `queue` as a background task."""
        return asyncio.create_task(self.run(queue), name="reactor")

    async def run(self, queue: asyncio.Queue[StateMessage]) -> None:
        """Consume `queue` forever, handling one message at a time."""
        logger.info("Reactor started, tracking %d checkers", len(self._states))
        while True:
            message = await queue.get()
            try:
                await self.handle(message)
            finally:
                queue.task_done()

    async def handle(self, message: StateMessage) -> None:
        """Process one observation to completion.

        Args:
            message: The probe observation.

        Raises:
            UnknownCheckerError: If the checker is not in the config.
            UnknownNotifierError: If a listed notifier is not registered.
        """
        checker = self.config.get_checker(message.checker_id)
        if checker is None or message.checker_id not in self._states:
            raise UnknownCheckerError(message.checker_id)

        self.stats.messages += 1
        previous = self._states[message.checker_id]

        if message.state != previous:
            self.stats.transitions += 1
            logger.info(
                "%s changed %s → %s (%s)",
                checker.id, previous, message.state, checker.url,
            )
            await self._dispatch(checker, message.state)

        self._states[message.checker_id] = message.state

    async def _dispatch(self, checker: CheckerConfig, state: State) -> None:
        """Invoke each of the checker's notifiers in order, isolating failures."""
        for notifier_id in checker.notifiers:
            notifier = self.registry.get(notifier_id)
            notification = Notification(
                checker_id=checker.id,
                checker_url=str(checker.url),
                state=state,
            )
            logger.info("Sending a notification to %s", notifier_id)
            try:
                await asyncio.wait_for(
                    notifier.notify(notification), timeout=self.notify_timeout,
                )
            except asyncio.TimeoutError:
                self.stats.delivery_failures += 1
                logger.error(
                    "Notifier `%s` timed out after %.0fs notifying that %s is %s",
                    notifier_id, self.notify_timeout, checker.id, state,
                )
            except Exception as e:
                self.stats.delivery_failures += 1
                logger.error(
                    "Notifier `%s` failed to notify that %s is %s: %s",
                    notifier_id, checker.id, state, e,
                )
            else:
                self.stats.deliveries += 1


def spawn(
    queue: asyncio.Queue[StateMessage],
    config: FileConfig,
    registry: Optional[NotifierRegistry] = None,
    notify_timeout: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS,
) -> asyncio.Task[None]:
    """Start a Reactor consuming `queue` as a background task.

    Must be called from a running event loop.

    Args:
        queue: Channel fed by the watcher.
        config: Validated configuration.
        registry: Notifier registry; built from `config` when omitted.
        notify_timeout: Upper bound in seconds for one notify() call.

    Returns:
        The reactor task. It only finishes by cancellation or a fatal error.
    """
    if registry is None:
        registry = NotifierRegistry.from_config(config)
    return Reactor(config, registry, notify_timeout=notify_timeout).spawn(queue)
