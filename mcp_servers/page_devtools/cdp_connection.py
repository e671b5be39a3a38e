"""Low-level CDP WebSocket connection to one page-scoped endpoint.

One reader task owns the socket: responses resolve the pending future with the
same id, events go to the event sink in the order they were received.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any

import websockets

from .errors import CdpConnectionError

logger = logging.getLogger("mcp.page_devtools.cdp")

EventSink = Callable[[str, dict[str, Any]], None]
CloseCallback = Callable[["CdpConnection"], None]


class CdpConnection:
    """Asynchronous CDP connection with id-correlated command responses."""

    def __init__(self, ws: Any, ws_url: str, *, timeout: float = 10.0) -> None:
        self.ws = ws
        self.ws_url = ws_url
        self.timeout = float(timeout)
        self._next_id = 1
        self._pending: dict[int, asyncio.Future] = {}
        self._event_sink: EventSink | None = None
        self._on_close: CloseCallback | None = None
        self._reader: asyncio.Task | None = None
        self._closed = False
        self.close_reason: str | None = None

    @classmethod
    async def open(cls, ws_url: str, *, timeout: float = 10.0, open_timeout: float = 5.0) -> CdpConnection:
        try:
            # Screenshots easily exceed the default 1 MiB frame limit.
            ws = await websockets.connect(ws_url, ping_interval=None, open_timeout=open_timeout, max_size=None)
        except Exception as exc:  # noqa: BLE001
            raise CdpConnectionError(f"Failed to connect to {ws_url}: {exc}") from exc
        conn = cls(ws, ws_url, timeout=timeout)
        conn.start()
        logger.info("cdp_connected url=%s", ws_url)
        return conn

    @property
    def closed(self) -> bool:
        return self._closed

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._event_sink = sink

    def set_close_callback(self, callback: CloseCallback | None) -> None:
        self._on_close = callback

    def start(self) -> None:
        if self._reader is None:
            self._reader = asyncio.get_running_loop().create_task(self._read_loop(), name="cdp-reader")

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a CDP command and wait for its correlated response."""
        if self._closed:
            raise CdpConnectionError("CDP connection is closed", method=method)

        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            try:
                await self.ws.send(json.dumps(msg))
            except Exception as exc:  # noqa: BLE001
                raise CdpConnectionError(str(exc) or "send failed", method=method) from exc
            try:
                return await asyncio.wait_for(fut, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise CdpConnectionError(f"CDP response timed out ({method})", method=method) from None
        finally:
            self._pending.pop(msg_id, None)

    async def close(self) -> None:
        if self._closed and self._reader is None:
            return
        self._closed = True
        with contextlib.suppress(Exception):
            await self.ws.close()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            with contextlib.suppress(Exception, asyncio.CancelledError):
                await asyncio.wait_for(reader, timeout=2.0)

    async def _read_loop(self) -> None:
        try:
            async for raw in self.ws:
                self._dispatch(raw)
        except websockets.ConnectionClosed as exc:
            self.close_reason = str(exc)
        except Exception as exc:  # noqa: BLE001
            self.close_reason = str(exc)
            logger.warning("cdp_reader_failed url=%s error=%s", self.ws_url, exc)
        finally:
            self._closed = True
            self._reader = None
            self._fail_pending(CdpConnectionError("CDP connection closed"))
            callback = self._on_close
            if callback is not None:
                try:
                    callback(self)
                except Exception:
                    logger.exception("cdp_close_callback_failed")

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return
        if not isinstance(data, dict):
            return

        if "id" in data:
            fut = self._pending.get(data.get("id"))
            if fut is None or fut.done():
                return
            if "error" in data:
                fut.set_exception(CdpConnectionError.from_protocol_error(data["error"]))
            else:
                result = data.get("result")
                fut.set_result(result if isinstance(result, dict) else {})
            return

        method = data.get("method")
        if not isinstance(method, str) or not method:
            return
        params = data.get("params")
        sink = self._event_sink
        if sink is not None:
            try:
                sink(method, params if isinstance(params, dict) else {})
            except Exception:
                logger.exception("cdp_event_sink_failed method=%s", method)

    def _fail_pending(self, error: CdpConnectionError) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for fut in pending:
            if not fut.done():
                fut.set_exception(error)


__all__ = ["CdpConnection", "CloseCallback", "EventSink"]
