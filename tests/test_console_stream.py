from __future__ import annotations

import asyncio

import pytest
from fakes import console_event, make_session

from mcp_servers.page_devtools.console_stream import (
    ConsoleStreamManager,
    ConsoleStreamOptions,
    format_stack,
    notification_level,
    stream_level,
)
from mcp_servers.page_devtools.errors import InvalidArgumentsError


def _manager(notify=None):
    session, conns = make_session()
    sent: list[tuple[str, str]] = []
    manager = ConsoleStreamManager(session, notify or (lambda level, message: sent.append((level, message))))
    return manager, conns, sent


def test_subscribe_twice_delivers_once() -> None:
    manager, conns, sent = _manager()

    async def run() -> None:
        await manager.subscribe()
        await manager.subscribe()
        conns[0].emit("Runtime.consoleAPICalled", console_event("hello"))

    asyncio.run(run())

    assert sent == [("info", "[console.log] hello")]
    assert manager.session.events.listener_count("Runtime.consoleAPICalled") == 1


def test_error_level_filter_drops_log_messages() -> None:
    manager, conns, sent = _manager()

    async def run() -> None:
        await manager.subscribe(["error"])
        conns[0].emit("Runtime.consoleAPICalled", console_event("just a log"))
        conns[0].emit("Runtime.consoleAPICalled", console_event("it broke", type="error"))

    asyncio.run(run())

    assert sent == [("error", "[console.error] it broke")]
    # Unfiltered buffering is independent of streaming.
    assert len(manager.session.get_entries()) == 2


def test_defaults_and_status() -> None:
    manager, _, _ = _manager()
    assert not manager.active
    assert manager.options is None

    options = asyncio.run(manager.subscribe())

    assert manager.active
    assert options.levels == ("log", "debug", "info", "warn", "error")
    assert options.include_exceptions is True
    assert options.include_stack is False
    assert options.to_dict() == {
        "levels": ["log", "debug", "info", "warn", "error"],
        "includeExceptions": True,
        "includeStack": False,
    }


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(InvalidArgumentsError):
        ConsoleStreamOptions.normalize(["verbose"])


def test_unsubscribe_detaches_and_is_idempotent() -> None:
    manager, conns, sent = _manager()

    async def run() -> None:
        await manager.subscribe()
        assert manager.unsubscribe() is True
        assert manager.unsubscribe() is False
        conns[0].emit("Runtime.consoleAPICalled", console_event("ignored"))

    asyncio.run(run())

    assert sent == []
    assert not manager.active
    assert manager.session.events.listener_count("Runtime.consoleAPICalled") == 0
    assert manager.session.events.listener_count("Runtime.exceptionThrown") == 0


def test_exceptions_are_streamed_unless_disabled() -> None:
    manager, conns, sent = _manager()
    exception = {"exceptionDetails": {"text": "Uncaught TypeError: x is not a function"}}

    async def run() -> None:
        await manager.subscribe()
        conns[0].emit("Runtime.exceptionThrown", exception)
        await manager.subscribe(include_exceptions=False)
        conns[0].emit("Runtime.exceptionThrown", exception)

    asyncio.run(run())

    assert sent == [("error", "[exception] Uncaught TypeError: x is not a function")]


def test_stack_is_appended_when_requested() -> None:
    manager, conns, sent = _manager()

    async def run() -> None:
        await manager.subscribe(["warn"], include_stack=True)
        conns[0].emit("Runtime.consoleAPICalled", console_event("careful", type="warning", url="https://example.test/app.js"))

    asyncio.run(run())

    assert sent == [("warning", "[console.warning] careful\n  at main (https://example.test/app.js:10:5)")]


def test_format_stack_limits_frames_and_fills_anonymous() -> None:
    frames = [{"functionName": "", "url": "", "lineNumber": i, "columnNumber": 0} for i in range(8)]

    text = format_stack({"callFrames": frames})

    lines = text.splitlines()
    assert len(lines) == 5
    assert lines[0] == "  at <anonymous> (<anonymous>:1:1)"
    assert format_stack({"callFrames": []}) is None
    assert format_stack(None) is None


def test_failing_notifier_never_breaks_event_handling() -> None:
    def notify(level: str, message: str) -> None:
        raise BrokenPipeError("stdout closed")

    manager, conns, _ = _manager(notify)

    async def run() -> None:
        await manager.subscribe()
        conns[0].emit("Runtime.consoleAPICalled", console_event("one"))
        conns[0].emit("Runtime.consoleAPICalled", console_event("two"))

    asyncio.run(run())

    assert [e.message for e in manager.session.get_entries(newest_first=False)] == ["one", "two"]


def test_async_notifier_failure_is_swallowed() -> None:
    delivered: list[str] = []

    async def notify(level: str, message: str) -> None:
        delivered.append(message)
        raise ConnectionResetError("client went away")

    manager, conns, _ = _manager(notify)

    async def run() -> None:
        await manager.subscribe()
        conns[0].emit("Runtime.consoleAPICalled", console_event("hi"))
        await asyncio.sleep(0.01)

    asyncio.run(run())

    assert delivered == ["[console.log] hi"]


def test_level_mapping() -> None:
    assert [stream_level(t) for t in ("assert", "error", "warning", "debug", "info", "log", "table", "trace")] == [
        "error",
        "error",
        "warn",
        "debug",
        "info",
        "log",
        "log",
        "log",
    ]
    assert [notification_level(t) for t in ("assert", "warning", "debug", "info", "startGroup")] == [
        "error",
        "warning",
        "debug",
        "info",
        "info",
    ]


def test_disposing_the_session_ends_the_subscription() -> None:
    manager, conns, sent = _manager()

    async def run() -> None:
        await manager.subscribe(["error"])
        await manager.session.dispose()

    asyncio.run(run())

    assert not manager.active
    assert manager.options is None
    assert manager.unsubscribe() is False
