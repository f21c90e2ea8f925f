import asyncio
from pathlib import Path

import httpx
import pytest

from conftest import RecordingNotifier, make_config, scripted_transport
from hellcheck.config import CheckerConfig
from hellcheck.models import Notification, State, StateMessage
from hellcheck.notifier.command import CommandNotifier
from hellcheck.notifier.registry import NotifierRegistry, UnknownNotifierError
from hellcheck.reactor import Reactor, UnknownCheckerError, spawn
from hellcheck.watcher import Watcher


def _reactor(checkers, notifiers, **kwargs) -> Reactor:  # noqa: ANN001, ANN003
    config = make_config(*checkers, notifier_ids=tuple(notifiers))
    return Reactor(config, NotifierRegistry(notifiers), **kwargs)


async def _feed(reactor: Reactor, checker_id: str, *states: State) -> None:
    for state in states:
        await reactor.handle(StateMessage(checker_id, state))


async def test_initial_up_is_silent() -> None:
    n1 = RecordingNotifier()
    reactor = _reactor([CheckerConfig(id="a", url="https://a.test", notifiers=("n1",))], {"n1": n1})

    await _feed(reactor, "a", State.UP, State.UP, State.UP)

    assert n1.calls == []
    assert reactor.stats.messages == 3
    assert reactor.stats.transitions == 0


async def test_notifies_only_on_transitions() -> None:
    n1 = RecordingNotifier()
    reactor = _reactor([CheckerConfig(id="a", url="https://a.test", notifiers=("n1",))], {"n1": n1})

    await _feed(reactor, "a", State.UP, State.UP, State.DOWN, State.DOWN, State.UP)

    assert n1.calls == [
        Notification("a", "https://a.test", State.DOWN),
        Notification("a", "https://a.test", State.UP),
    ]
    assert reactor.stats.transitions == 2
    assert reactor.stats.deliveries == 2


async def test_first_down_notifies() -> None:
    n1 = RecordingNotifier()
    reactor = _reactor([CheckerConfig(id="a", url="https://a.test", notifiers=("n1",))], {"n1": n1})

    await _feed(reactor, "a", State.DOWN)

    assert [c.state for c in n1.calls] == [State.DOWN]


async def test_notifiers_called_in_configured_order() -> None:
    order: list[str] = []

    class Tagged(RecordingNotifier):
        def __init__(self, tag: str) -> None:
            super().__init__()
            self.tag = tag

        async def notify(self, notification: Notification) -> None:
            order.append(self.tag)

    notifiers = {"x": Tagged("x"), "y": Tagged("y"), "z": Tagged("z")}
    reactor = _reactor(
        [CheckerConfig(id="a", url="https://a.test", notifiers=("z", "x", "y"))], notifiers,
    )

    await _feed(reactor, "a", State.DOWN)

    assert order == ["z", "x", "y"]


async def test_checker_without_notifiers_still_tracks_state() -> None:
    n1 = RecordingNotifier()
    reactor = _reactor(
        [
            CheckerConfig(id="a", url="https://a.test", notifiers=("n1",)),
            CheckerConfig(id="quiet", url="https://q.test"),
        ],
        {"n1": n1},
    )

    await _feed(reactor, "quiet", State.DOWN)

    assert reactor._states["quiet"] is State.DOWN
    assert reactor.stats.transitions == 1
    assert n1.calls == []


async def test_delivery_failure_is_isolated() -> None:
    broken = RecordingNotifier(fail=True)
    exploding = RecordingNotifier(error=RuntimeError("unexpected"))
    good = RecordingNotifier()
    reactor = _reactor(
        [
            CheckerConfig(id="a", url="https://a.test", notifiers=("broken", "exploding", "good")),
            CheckerConfig(id="b", url="https://b.test", notifiers=("good",)),
        ],
        {"broken": broken, "exploding": exploding, "good": good},
    )

    await _feed(reactor, "a", State.DOWN)
    await _feed(reactor, "b", State.DOWN)
    # state is committed even though a delivery failed
    await _feed(reactor, "a", State.DOWN)

    assert len(broken.calls) == 1
    assert len(exploding.calls) == 1
    assert [c.checker_id for c in good.calls] == ["a", "b"]
    assert reactor.stats.delivery_failures == 2
    assert reactor.stats.deliveries == 2


async def test_slow_notifier_times_out() -> None:
    class Hanging(RecordingNotifier):
        async def notify(self, notification: Notification) -> None:
            await asyncio.sleep(10)

    after = RecordingNotifier()
    reactor = _reactor(
        [CheckerConfig(id="a", url="https://a.test", notifiers=("hang", "after"))],
        {"hang": Hanging(), "after": after},
        notify_timeout=0.05,
    )

    await _feed(reactor, "a", State.DOWN)

    assert reactor.stats.delivery_failures == 1
    assert len(after.calls) == 1


async def test_unknown_notifier_is_fatal() -> None:
    reactor = Reactor(
        make_config(CheckerConfig(id="a", url="https://a.test", notifiers=("ghost",))),
        NotifierRegistry({}),
    )

    await _feed(reactor, "a", State.UP)
    with pytest.raises(UnknownNotifierError):
        await _feed(reactor, "a", State.DOWN)


async def test_unknown_checker_is_fatal() -> None:
    reactor = _reactor([CheckerConfig(id="a", url="https://a.test")], {})

    with pytest.raises(UnknownCheckerError):
        await _feed(reactor, "nope", State.UP)


async def test_spawned_task_consumes_queue() -> None:
    n1 = RecordingNotifier()
    config = make_config(
        CheckerConfig(id="a", url="https://a.test", notifiers=("n1",)), notifier_ids=("n1",),
    )
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    task = spawn(queue, config, NotifierRegistry({"n1": n1}))

    for state in (State.DOWN, State.DOWN, State.UP):
        queue.put_nowait(StateMessage("a", state))
    await asyncio.wait_for(queue.join(), timeout=2)

    assert [c.state for c in n1.calls] == [State.DOWN, State.UP]
    assert not task.done()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_spawned_task_dies_on_unknown_checker() -> None:
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    task = spawn(queue, make_config(), NotifierRegistry({}))

    queue.put_nowait(StateMessage("ghost", State.DOWN))

    with pytest.raises(UnknownCheckerError):
        await asyncio.wait_for(task, timeout=2)


async def test_command_notifier_runs_once_per_transition(tmp_path: Path) -> None:
    log = tmp_path / "calls.log"
    command = CommandNotifier(
        "/bin/sh", ("-c", f'echo "$HELLCHECK_ID $HELLCHECK_OK" >> "{log}"'),
    )
    reactor = _reactor(
        [CheckerConfig(id="a", url="https://a.test", notifiers=("cmd",))], {"cmd": command},
    )

    await _feed(reactor, "a", State.UP, State.DOWN, State.DOWN, State.UP)

    assert log.read_text().splitlines() == ["a false", "a true"]


async def test_probe_sequence_drives_two_notifications() -> None:
    statuses = iter([200, 200, 500, 500, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses, 200))

    n1 = RecordingNotifier()
    config = make_config(
        CheckerConfig(id="svc1", url="https://svc1.test", interval=0.02, notifiers=("n1",)),
        notifier_ids=("n1",),
    )
    queue: asyncio.Queue[StateMessage] = asyncio.Queue()
    reactor_task = spawn(queue, config, NotifierRegistry({"n1": n1}))
    watcher = Watcher(config, queue, transport=scripted_transport(handler))
    watcher_task = asyncio.create_task(watcher.run())

    while watcher.stats["svc1"].probes < 5:
        await asyncio.sleep(0.01)
    watcher_task.cancel()
    await asyncio.wait_for(queue.join(), timeout=2)
    reactor_task.cancel()
    await asyncio.gather(watcher_task, reactor_task, return_exceptions=True)

    assert [c.state for c in n1.calls] == [State.DOWN, State.UP]
