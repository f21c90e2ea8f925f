"""Hellcheck — Command Notifier.

Runs an external program for every state change. The checker id, URL
and state are exported as HELLCHECK_ID, HELLCHECK_URL and HELLCHECK_OK
on top of the parent environment; exit status 0 means delivered.
"""

from __future__ import annotations

import asyncio
import os

from hellcheck.config import CommandNotifierConfig
from hellcheck.models import Notification
from hellcheck.notifier.base import DEFAULT_TIMEOUT_SECONDS, DeliveryError, Notifier
from hellcheck.notifier.formatters import build_command_env
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)


class CommandNotifier(Notifier):
    """Spawns `command *arguments` and waits for it to exit.

    A process still running after `timeout` seconds is killed and the
    delivery counts as failed.
    """

    def __init__(
        self,
        command: str,
        arguments: tuple[str, ...] = (),
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.command = command
        self.arguments = tuple(arguments)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: CommandNotifierConfig) -> "CommandNotifier":
        return cls(command=config.command, arguments=config.arguments)

    async def notify(self, notification: Notification) -> None:
        env = {**os.environ, **build_command_env(notification)}
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command, *self.arguments, env=env,
            )
        except OSError as e:
            raise DeliveryError(f"Failed to start `{self.command}`: {e}") from e

        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise DeliveryError(
                f"`{self.command}` did not finish within {self.timeout:.0f}s"
            ) from None

        if returncode != 0:
            raise DeliveryError(f"`{self.command}` exited with status {returncode}")
        logger.debug("Command `%s` succeeded for %s", self.command, notification.checker_id)

    def __repr__(self) -> str:
        return f"CommandNotifier(command={self.command!r}, arguments={self.arguments!r})"
