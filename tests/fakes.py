from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from mcp_servers.page_devtools.config import PageConfig
from mcp_servers.page_devtools.page_session import PageSession

ENDPOINT = "ws://127.0.0.1:9222/devtools/page/ABC"


class FakeConnection:
    """In-memory stand-in for CdpConnection.

    ``responses`` maps a CDP method to a result dict, an exception instance, or
    a callable ``(params) -> dict`` evaluated at send time.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.closed = False
        self.close_reason: str | None = None
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.responses: dict[str, Any] = dict(responses or {})
        self.sink: Callable[[str, dict[str, Any]], None] | None = None
        self.on_close: Callable[[Any], None] | None = None
        self.close_count = 0

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        # Every command is a round trip: yield like the real socket would.
        await asyncio.sleep(0)
        resp = self.responses.get(method, {})
        if isinstance(resp, BaseException):
            raise resp
        if callable(resp):
            resp = resp(params or {})
            if isinstance(resp, BaseException):
                raise resp
        return resp

    def set_event_sink(self, sink: Callable[[str, dict[str, Any]], None] | None) -> None:
        self.sink = sink

    def set_close_callback(self, callback: Callable[[Any], None] | None) -> None:
        self.on_close = callback

    async def close(self) -> None:
        self.closed = True
        self.close_count += 1

    def emit(self, method: str, params: dict[str, Any]) -> None:
        assert self.sink is not None
        self.sink(method, params)

    def drop(self) -> None:
        """Simulate the remote end going away."""
        self.closed = True
        self.close_reason = "remote closed"
        if self.on_close is not None:
            self.on_close(self)

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]


def make_session(
    responses: dict[str, Any] | None = None,
) -> tuple[PageSession, list[FakeConnection]]:
    """Session whose connector hands out a fresh FakeConnection per connect."""
    conns: list[FakeConnection] = []

    async def connector(config: PageConfig) -> FakeConnection:
        await asyncio.sleep(0)
        conn = FakeConnection(responses)
        conns.append(conn)
        return conn

    return PageSession(PageConfig(endpoint=ENDPOINT), connector=connector), conns


def console_event(*values: Any, type: str = "log", timestamp: float = 1_700_000_000_000.0, url: str | None = None) -> dict[str, Any]:
    params: dict[str, Any] = {
        "type": type,
        "args": [{"type": "string", "value": v} for v in values],
        "timestamp": timestamp,
    }
    if url:
        params["stackTrace"] = {"callFrames": [{"functionName": "main", "url": url, "lineNumber": 9, "columnNumber": 4}]}
    return params
