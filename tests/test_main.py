import asyncio
from pathlib import Path

import httpx
import pytest

from conftest import RecordingNotifier, make_config, status_transport
from hellcheck.config import CheckerConfig
from hellcheck.main import (
    TEST_CHECKER_ID,
    HellcheckApp,
    _resolve_status_interval,
    build_arg_parser,
    main,
    run_test,
)
from hellcheck.models import Notification, State
from hellcheck.notifier.registry import NotifierRegistry


def test_missing_config_file_exits_1(tmp_path: Path) -> None:
    assert main(["watch", "-f", str(tmp_path / "missing.yml")]) == 1


def test_invalid_config_exits_1(tmp_path: Path) -> None:
    path = tmp_path / "hellcheck.yml"
    path.write_text("checkers:\n  a:\n    url: https://a.test\n    notifiers: [ghost]\n")

    assert main(["test", "-f", str(path)]) == 1


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args([])

    args = build_arg_parser().parse_args(
        ["watch", "-f", "x.yml", "--status-interval", "0", "--log-level", "DEBUG"],
    )
    assert args.command == "watch"
    assert args.file == "x.yml"
    assert args.status_interval == 0
    assert args.log_level == "DEBUG"


def test_status_interval_resolution(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HELLCHECK_STATUS_INTERVAL", raising=False)
    assert _resolve_status_interval(None) == 60
    assert _resolve_status_interval(5) == 5
    monkeypatch.setenv("HELLCHECK_STATUS_INTERVAL", "0")
    assert _resolve_status_interval(None) == 0
    monkeypatch.setenv("HELLCHECK_STATUS_INTERVAL", "often")
    assert _resolve_status_interval(None) == 60


async def test_run_test_reports_probe_results() -> None:
    config = make_config(CheckerConfig(id="a", url="https://a.test"))

    assert await run_test(config, transport=status_transport(200)) == 0
    assert await run_test(config, transport=status_transport(503)) == 1


async def test_run_test_sends_test_notification() -> None:
    good, bad = RecordingNotifier(), RecordingNotifier(fail=True)
    registry = NotifierRegistry({"good": good, "bad": bad})
    config = make_config(CheckerConfig(id="a", url="https://a.test"))

    code = await run_test(config, notify=True, registry=registry, transport=status_transport(200))

    assert code == 1
    expected = Notification(TEST_CHECKER_ID, "test notification", State.UP)
    assert good.calls == [expected]
    assert bad.calls == [expected]
    assert good.closed and bad.closed


async def test_app_stops_gracefully() -> None:
    n1 = RecordingNotifier()
    config = make_config(
        CheckerConfig(id="a", url="https://a.test", interval=0.05, notifiers=("n1",)),
        notifier_ids=("n1",),
    )
    app = HellcheckApp(
        config,
        status_interval=0,
        registry=NotifierRegistry({"n1": n1}),
        transport=status_transport(500),
    )

    asyncio.get_running_loop().call_later(0.3, app.stop)
    code = await asyncio.wait_for(app.run(), timeout=5)

    assert code == 0
    assert [c.state for c in n1.calls] == [State.DOWN]
    assert app.watcher.stats["a"].probes >= 2
    assert n1.closed


async def test_app_exits_1_when_reactor_dies() -> None:
    config = make_config(
        CheckerConfig(id="a", url="https://a.test", interval=0.05, notifiers=("ghost",)),
    )
    app = HellcheckApp(
        config,
        status_interval=0,
        registry=NotifierRegistry({}),
        transport=status_transport(500),
    )

    assert await asyncio.wait_for(app.run(), timeout=5) == 1


async def test_app_exits_1_when_watcher_dies() -> None:
    def handler(request):  # noqa: ANN001, ANN202
        raise RuntimeError("boom")

    config = make_config(CheckerConfig(id="a", url="https://a.test", interval=0.05))
    app = HellcheckApp(
        config, status_interval=0, transport=httpx.MockTransport(handler),
    )

    assert await asyncio.wait_for(app.run(), timeout=5) == 1


async def test_heartbeat_logs_status(caplog: pytest.LogCaptureFixture) -> None:
    config = make_config(CheckerConfig(id="a", url="https://a.test"))
    app = HellcheckApp(config, status_interval=0, registry=NotifierRegistry({}))

    with caplog.at_level("INFO", logger="hellcheck.main"):
        await app._log_status()

    assert any(r.getMessage().startswith("alive:") for r in caplog.records)
