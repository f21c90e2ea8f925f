import asyncio

import httpx
import pytest

from conftest import make_config, status_transport
from hellcheck.config import CheckerConfig
from hellcheck.models import State, StateMessage
from hellcheck.watcher import Watcher, WatcherCrashed


def _drain(queue: asyncio.Queue[StateMessage]) -> list[StateMessage]:
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages


async def _run_for(watcher: Watcher, seconds: float) -> None:
    task = asyncio.create_task(watcher.run())
    await asyncio.sleep(seconds)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_emits_one_message_per_probe() -> None:
    config = make_config(CheckerConfig(id="a", url="https://a.test", interval=0.05))
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    watcher = Watcher(config, queue, transport=status_transport(500))

    await _run_for(watcher, 0.2)

    messages = _drain(queue)
    assert messages
    assert all(m == StateMessage("a", State.DOWN) for m in messages)
    assert watcher.stats["a"].probes == len(messages)
    assert watcher.stats["a"].down == len(messages)
    assert watcher.stats["a"].last_state is State.DOWN


async def test_slow_checker_does_not_delay_fast_one() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "slow.test":
            await asyncio.sleep(0.2)
        return httpx.Response(200)

    config = make_config(
        CheckerConfig(id="fast", url="https://fast.test", interval=0.05),
        CheckerConfig(id="slow", url="https://slow.test", interval=0.25, timeout=5.0),
    )
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    watcher = Watcher(config, queue, transport=httpx.MockTransport(handler))

    await _run_for(watcher, 1.0)

    counts = {"fast": 0, "slow": 0}
    for message in _drain(queue):
        counts[message.checker_id] += 1
    assert counts["slow"] >= 1
    assert counts["fast"] >= 3 * counts["slow"]


async def test_interval_starts_after_emit() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.1)
        return httpx.Response(200)

    config = make_config(CheckerConfig(id="a", url="https://a.test", interval=0.1, timeout=5.0))
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    watcher = Watcher(config, queue, transport=httpx.MockTransport(handler))

    await _run_for(watcher, 0.5)

    # 0.1s request + 0.1s sleep per cycle: never more than 3 in half a second
    assert 1 <= len(_drain(queue)) <= 3


async def test_crashed_probe_loop_surfaces() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("transport exploded")

    config = make_config(
        CheckerConfig(id="bad", url="https://bad.test", interval=0.05),
    )
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    watcher = Watcher(config, queue, transport=httpx.MockTransport(handler))

    with pytest.raises(WatcherCrashed) as exc_info:
        await asyncio.wait_for(watcher.run(), timeout=2)
    assert "probe:bad" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_no_checkers_waits_for_cancellation() -> None:
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    watcher = Watcher(make_config(), queue)

    await _run_for(watcher, 0.05)

    assert queue.empty()
