from __future__ import annotations

from typing import Callable, Optional

import httpx
import pytest

from hellcheck.config import CheckerConfig, CommandNotifierConfig, FileConfig, NotifierEntry
from hellcheck.models import Notification
from hellcheck.notifier.base import DeliveryError, Notifier


class RecordingNotifier(Notifier):
    """Notifier double that records every notification it receives."""

    def __init__(self, fail: bool = False, error: Optional[Exception] = None) -> None:
        self.fail = fail
        self.error = error
        self.calls: list[Notification] = []
        self.closed = False

    async def notify(self, notification: Notification) -> None:
        self.calls.append(notification)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise DeliveryError("boom")

    async def close(self) -> None:
        self.closed = True


def make_config(
    *checkers: CheckerConfig,
    notifier_ids: tuple[str, ...] = (),
) -> FileConfig:
    """FileConfig whose notifier entries are placeholders (/bin/true)."""
    notifiers = tuple(
        NotifierEntry(id=nid, config=CommandNotifierConfig(command="/bin/true"))
        for nid in notifier_ids
    )
    return FileConfig(checkers=tuple(checkers), notifiers=notifiers)


def status_transport(status: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status))


def scripted_transport(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()
