"""Page session: owns the single CDP connection and the per-connection log buffer.

All per-connection mutable state (connection reference, in-flight connect,
log buffer, log id counter) lives on one ``PageSession`` and is dropped by
``reset()`` when the connection goes away. The session never reconnects on its
own; the next command after a disconnect opens a fresh connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from .best_effort import best_effort
from .cdp_connection import CdpConnection
from .config import MAX_BUFFERED_ENTRIES, PageConfig
from .errors import CdpConnectionError, EvaluationError, InvalidArgumentsError, PageTimeoutError
from .event_hub import EventHub

logger = logging.getLogger("mcp.page_devtools.session")

LOG_KINDS = ("console", "exception", "log")
SCREENSHOT_FORMATS = ("png", "jpeg", "webp")
MAX_LOAD_TIMEOUT_MS = 120_000


class Connection(Protocol):
    closed: bool

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def set_event_sink(self, sink: Callable[[str, dict[str, Any]], None] | None) -> None: ...

    def set_close_callback(self, callback: Callable[[Any], None] | None) -> None: ...

    async def close(self) -> None: ...


Connector = Callable[[PageConfig], Awaitable[Connection]]


@dataclass(slots=True)
class LogEntry:
    id: int
    kind: str
    level: str
    message: str
    timestamp: datetime
    source: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.source:
            out["source"] = self.source
        if self.url:
            out["url"] = self.url
        return out


@dataclass(slots=True, frozen=True)
class EvaluateResult:
    type: str
    value: str
    description: str | None = None


@dataclass(slots=True, frozen=True)
class Screenshot:
    data: str
    mime_type: str


def normalize_timestamp(value: Any) -> datetime:
    """Convert a protocol timestamp to an aware UTC datetime.

    Units are guessed from magnitude: > 1e12 is epoch milliseconds, anything
    else is epoch seconds. The thresholds are a heuristic; values close to them
    can be misread. Non-numeric input yields "now".
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return datetime.now(timezone.utc)
    if value > 1e12:
        millis = float(value)
    else:
        # Both the > 1e6 band and small values are read as seconds.
        millis = float(value) * 1000.0
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return datetime.now(timezone.utc)


def format_remote_object(remote: Any) -> str:
    """Render a CDP RemoteObject the way the page would print it."""
    if not isinstance(remote, dict):
        return "undefined" if remote is None else str(remote)
    if "value" in remote:
        value = remote["value"]
        if isinstance(value, (dict, list)):
            try:
                return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            except (TypeError, ValueError):
                return str(value)
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if remote.get("unserializableValue"):
        return str(remote["unserializableValue"])
    if remote.get("description"):
        return str(remote["description"])
    typ = remote.get("type")
    return str(typ) if typ else "undefined"


def format_exception_details(details: Any) -> str | None:
    """Compose ``text (url:line:col)`` from CDP ExceptionDetails, 1-based location."""
    if not isinstance(details, dict):
        return None
    exception = details.get("exception") if isinstance(details.get("exception"), dict) else {}
    base: str | None = None
    if details.get("text") is not None:
        base = str(details["text"])
    elif exception.get("description") is not None:
        base = str(exception["description"])
    elif exception.get("value"):
        base = format_remote_object({"value": exception["value"]})

    url = details.get("url")
    line = details.get("lineNumber")
    col = details.get("columnNumber")
    location = None
    if url and isinstance(line, int):
        location = f"{url}:{line + 1}"
        if isinstance(col, int):
            location += f":{col + 1}"
    if location:
        return f"{base} ({location})" if base else location
    return base


async def open_cdp_connection(config: PageConfig) -> CdpConnection:
    return await CdpConnection.open(
        config.endpoint,
        timeout=config.command_timeout,
        open_timeout=config.connect_timeout,
    )


class PageSession:
    """Connection manager for one page.

    ``events`` is the session-owned dispatch table; subscribers (network
    recorder, console stream, load waiters) register there and survive
    reconnects. ``dispose()`` clears it.
    """

    def __init__(self, config: PageConfig, *, connector: Connector | None = None) -> None:
        self.config = config
        self.events = EventHub()
        self._connector: Connector = connector or open_cdp_connection
        self._conn: Connection | None = None
        self._connecting: asyncio.Future | None = None
        self._entries: deque[LogEntry] = deque(maxlen=max(1, int(config.max_log_entries or MAX_BUFFERED_ENTRIES)))
        self._next_id = 1
        self._generation = 0
        self.epoch = 0
        # Domains enabled on the current connection, and domains to re-enable after a reconnect.
        self._enabled: set[str] = set()
        self._sticky: dict[str, dict[str, Any] | None] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Connection lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        conn = self._conn
        return conn is not None and not getattr(conn, "closed", False)

    async def connect(self) -> None:
        await self._ensure_connection()

    def reset(self) -> None:
        """Forget the connection epoch: connection ref, pending connect, log buffer, id counter."""
        self._generation += 1
        self._conn = None
        self._connecting = None
        self._enabled = set()
        self._entries.clear()
        self._next_id = 1

    async def dispose(self) -> None:
        """Close the connection and drop all listeners. Safe to call repeatedly."""
        conn = self._conn
        pending = self._connecting
        self.reset()
        self.events.clear()
        if pending is not None and not pending.done():
            pending.cancel()
        if conn is not None:
            result = await best_effort("connection.close", conn.close(), log=logger)
            if result.ok:
                logger.info("page_session_disposed epoch=%s", self.epoch)

    async def _ensure_connection(self) -> Connection:
        conn = self._conn
        if conn is not None:
            if not getattr(conn, "closed", False):
                return conn
            # Closed before the disconnect callback could reset us.
            self.reset()
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect_internal(self._generation))
        pending = self._connecting
        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            if pending.cancelled():
                raise CdpConnectionError("Page session was disposed while connecting") from None
            raise
        except Exception:
            # A failed attempt must not stay cached; the next caller retries.
            if self._connecting is pending:
                self._connecting = None
            raise

    async def _connect_internal(self, generation: int) -> Connection:
        conn = await self._connector(self.config)
        conn.set_event_sink(self._on_event)
        conn.set_close_callback(self._on_connection_closed)
        try:
            enabled = await self._enable_domains(conn)
            if generation != self._generation:
                raise CdpConnectionError("Page session was reset while connecting")
            # The close callback ignores a connection that is not installed yet.
            if getattr(conn, "closed", False):
                raise CdpConnectionError(f"Connection to {self.config.endpoint} closed while enabling domains")
        except BaseException:
            if generation == self._generation:
                self.clear_entries()
            await best_effort("connection.close", conn.close(), log=logger)
            raise
        self._conn = conn
        self._connecting = None
        self._enabled = enabled
        self.epoch += 1
        logger.info("page_session_connected epoch=%s domains=%s", self.epoch, ",".join(sorted(enabled)))
        return conn

    async def _enable_domains(self, conn: Connection) -> set[str]:
        await conn.send("Runtime.enable")
        enabled = {"Runtime"}
        for domain in ("Page", "Console", "Log"):
            if (await best_effort(f"{domain}.enable", conn.send(f"{domain}.enable"), log=logger)).ok:
                enabled.add(domain)
        for domain, params in list(self._sticky.items()):
            if domain in enabled:
                continue
            if (await best_effort(f"{domain}.enable", conn.send(f"{domain}.enable", params), log=logger)).ok:
                enabled.add(domain)
        # Targets started with a "wait for debugger" pause stay frozen until poked once.
        await best_effort("Runtime.runIfWaitingForDebugger", conn.send("Runtime.runIfWaitingForDebugger"), log=logger)
        return enabled

    def _on_connection_closed(self, conn: Any) -> None:
        if conn is not self._conn:
            return
        logger.warning("page_connection_lost epoch=%s reason=%s", self.epoch, getattr(conn, "close_reason", None))
        self.reset()

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    async def send_command(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        conn = await self._ensure_connection()
        return await conn.send(method, params)

    async def enable_domain(self, domain: str, params: dict[str, Any] | None = None) -> None:
        """Enable ``domain`` once per connection and again after any reconnect."""
        self._sticky[domain] = params
        conn = await self._ensure_connection()
        if domain in self._enabled:
            return
        await conn.send(f"{domain}.enable", params)
        self._enabled.add(domain)

    async def evaluate(self, expression: str, *, await_promise: bool = True, return_by_value: bool = True) -> EvaluateResult:
        result = await self.send_command(
            "Runtime.evaluate",
            {
                "expression": expression,
                "awaitPromise": bool(await_promise),
                "returnByValue": bool(return_by_value),
                "userGesture": True,
            },
        )
        details = result.get("exceptionDetails")
        if details:
            raise EvaluationError(format_exception_details(details) or "Evaluation threw an exception")
        remote = result.get("result") if isinstance(result.get("result"), dict) else {}
        description = remote.get("description")
        return EvaluateResult(
            type=str(remote.get("type") or "undefined"),
            value=format_remote_object(remote),
            description=str(description) if description is not None else None,
        )

    async def capture_screenshot(
        self,
        *,
        format: str = "png",
        quality: int | None = None,
        capture_beyond_viewport: bool = False,
        from_surface: bool = True,
    ) -> Screenshot:
        if format not in SCREENSHOT_FORMATS:
            raise InvalidArgumentsError(f"Unsupported screenshot format: {format}")
        await self._ensure_connection()
        await best_effort("Page.bringToFront", self.send_command("Page.bringToFront"), log=logger)
        params: dict[str, Any] = {
            "format": format,
            "captureBeyondViewport": bool(capture_beyond_viewport),
            "fromSurface": bool(from_surface),
        }
        if quality is not None:
            params["quality"] = int(quality)
        shot = await self.send_command("Page.captureScreenshot", params)
        return Screenshot(data=str(shot.get("data") or ""), mime_type=f"image/{format}")

    async def navigate(self, url: str, *, wait_for_load: bool = True, timeout_ms: int = 15_000) -> dict[str, Any]:
        async def _go() -> dict[str, Any]:
            res = await self.send_command("Page.navigate", {"url": url})
            if res.get("errorText"):
                raise CdpConnectionError(str(res["errorText"]), method="Page.navigate")
            return res

        return await self._run_then_wait("Page.loadEventFired", _go, wait_for_load, timeout_ms)

    async def reload(self, *, ignore_cache: bool = False, wait_for_load: bool = True, timeout_ms: int = 15_000) -> dict[str, Any]:
        async def _go() -> dict[str, Any]:
            return await self.send_command("Page.reload", {"ignoreCache": bool(ignore_cache)})

        return await self._run_then_wait("Page.loadEventFired", _go, wait_for_load, timeout_ms)

    async def _run_then_wait(
        self,
        event: str,
        action: Callable[[], Awaitable[dict[str, Any]]],
        wait: bool,
        timeout_ms: int,
    ) -> dict[str, Any]:
        timeout_ms = max(0, min(int(timeout_ms), MAX_LOAD_TIMEOUT_MS))
        if not wait or timeout_ms == 0:
            return await action()

        await self.enable_domain("Page")
        fired: asyncio.Future = asyncio.get_running_loop().create_future()

        def _on_fired(params: dict[str, Any]) -> None:
            if not fired.done():
                fired.set_result(params)

        # Register before acting so a fast load is not missed.
        key = ("load-waiter", id(fired))
        self.events.register(event, _on_fired, key=key)
        try:
            result = await action()
            done, _ = await asyncio.wait({fired}, timeout=timeout_ms / 1000.0)
            if fired not in done:
                raise PageTimeoutError(f"Timed out after {timeout_ms} ms waiting for {event}")
            return result
        finally:
            self.events.unregister(event, key)
            if not fired.done():
                fired.cancel()

    # ─────────────────────────────────────────────────────────────────────────
    # Log buffer
    # ─────────────────────────────────────────────────────────────────────────

    def get_entries(
        self,
        *,
        limit: int = 20,
        kinds: Iterable[str] | None = None,
        newest_first: bool = True,
    ) -> list[LogEntry]:
        wanted = set(kinds or ())
        subset = [e for e in self._entries if e.kind in wanted] if wanted else list(self._entries)
        limit = max(0, int(limit))
        window = subset[max(0, len(subset) - limit) :]
        if newest_first:
            window.reverse()
        return window

    def clear_entries(self) -> None:
        self._entries.clear()
        self._next_id = 1

    def _record(
        self,
        *,
        kind: str,
        level: str,
        message: str,
        timestamp: Any,
        source: str | None = None,
        url: str | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            id=self._next_id,
            kind=kind,
            level=level,
            message=message,
            timestamp=normalize_timestamp(timestamp),
            source=source or None,
            url=url or None,
        )
        self._next_id += 1
        # deque(maxlen) evicts the oldest entry.
        self._entries.append(entry)
        return entry

    def _on_event(self, method: str, params: dict[str, Any]) -> None:
        if method == "Runtime.consoleAPICalled":
            level = params.get("type") or "log"
            args = params.get("args")
            if isinstance(args, list) and args:
                message = " ".join(format_remote_object(a) for a in args)
            else:
                message = str(level)
            self._record(
                kind="console",
                level=str(level),
                message=message,
                timestamp=params.get("timestamp"),
                url=_top_frame_url(params.get("stackTrace")),
            )
        elif method == "Runtime.exceptionThrown":
            details = params.get("exceptionDetails") if isinstance(params.get("exceptionDetails"), dict) else {}
            self._record(
                kind="exception",
                level="error",
                message=format_exception_details(details) or "Runtime exception thrown",
                timestamp=params.get("timestamp"),
                url=details.get("url"),
            )
        elif method == "Log.entryAdded":
            entry = params.get("entry") if isinstance(params.get("entry"), dict) else {}
            self._record(
                kind="log",
                level=str(entry.get("level") or "info"),
                message=str(entry.get("text") or ""),
                timestamp=entry.get("timestamp"),
                source=entry.get("source"),
                url=entry.get("url"),
            )
        self.events.emit(method, params)


def _top_frame_url(stack: Any) -> str | None:
    if not isinstance(stack, dict):
        return None
    frames = stack.get("callFrames")
    if not isinstance(frames, list) or not frames or not isinstance(frames[0], dict):
        return None
    url = frames[0].get("url")
    return url if isinstance(url, str) and url else None


__all__ = [
    "LOG_KINDS",
    "Connection",
    "EvaluateResult",
    "LogEntry",
    "PageSession",
    "Screenshot",
    "format_exception_details",
    "format_remote_object",
    "normalize_timestamp",
]
