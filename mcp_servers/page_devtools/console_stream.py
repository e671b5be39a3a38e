"""Live console streaming: CDP console/exception events -> leveled notifications."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .best_effort import best_effort
from .errors import InvalidArgumentsError
from .page_session import format_remote_object

if TYPE_CHECKING:
    from .page_session import PageSession

logger = logging.getLogger("mcp.page_devtools.console")

STREAM_LEVELS = ("log", "debug", "info", "warn", "error")
CONSOLE_EVENT = "Runtime.consoleAPICalled"
EXCEPTION_EVENT = "Runtime.exceptionThrown"
_CONSOLE_KEY = ("console-stream", CONSOLE_EVENT)
_EXCEPTION_KEY = ("console-stream", EXCEPTION_EVENT)
MAX_STACK_FRAMES = 5

# (level, message) -> None or awaitable; failures are swallowed.
Notifier = Callable[[str, str], Any]


def stream_level(console_type: str | None) -> str:
    """Filter bucket: log/debug/info/warn/error."""
    if console_type in ("assert", "error"):
        return "error"
    if console_type == "warning":
        return "warn"
    if console_type == "debug":
        return "debug"
    if console_type == "info":
        return "info"
    return "log"


def notification_level(console_type: str | None) -> str:
    """Outward severity: debug/info/warning/error."""
    if console_type in ("assert", "error"):
        return "error"
    if console_type == "warning":
        return "warning"
    if console_type == "debug":
        return "debug"
    return "info"


def format_console_message(params: dict[str, Any]) -> str:
    header = f"[console.{params.get('type') or 'log'}]"
    args = params.get("args") if isinstance(params.get("args"), list) else []
    return f"{header} {' '.join(format_remote_object(a) for a in args)}".strip()


def format_stack(stack: Any) -> str | None:
    if not isinstance(stack, dict):
        return None
    frames = stack.get("callFrames")
    if not isinstance(frames, list) or not frames:
        return None
    lines = []
    for frame in frames[:MAX_STACK_FRAMES]:
        if not isinstance(frame, dict):
            continue
        line = int(frame.get("lineNumber") or 0) + 1
        col = int(frame.get("columnNumber") or 0) + 1
        location = f"{frame.get('url') or '<anonymous>'}:{line}:{col}"
        lines.append(f"  at {frame.get('functionName') or '<anonymous>'} ({location})")
    return "\n".join(lines) or None


@dataclass(slots=True, frozen=True)
class ConsoleStreamOptions:
    levels: tuple[str, ...] = STREAM_LEVELS
    include_exceptions: bool = True
    include_stack: bool = False

    @classmethod
    def normalize(
        cls,
        levels: Iterable[str] | None = None,
        include_exceptions: bool | None = None,
        include_stack: bool | None = None,
    ) -> ConsoleStreamOptions:
        picked = [lv for lv in levels or () if lv]
        unknown = [lv for lv in picked if lv not in STREAM_LEVELS]
        if unknown:
            raise InvalidArgumentsError(f"Unknown console level(s): {', '.join(map(str, unknown))}")
        ordered = tuple(lv for lv in STREAM_LEVELS if lv in picked) or STREAM_LEVELS
        return cls(
            levels=ordered,
            include_exceptions=True if include_exceptions is None else bool(include_exceptions),
            include_stack=False if include_stack is None else bool(include_stack),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "levels": list(self.levels),
            "includeExceptions": self.include_exceptions,
            "includeStack": self.include_stack,
        }


class ConsoleStreamManager:
    def __init__(self, session: PageSession, notify: Notifier) -> None:
        self.session = session
        self._notify = notify
        self._subscription: ConsoleStreamOptions | None = None
        self._inflight: set[asyncio.Future] = set()

    @property
    def active(self) -> bool:
        # A disposed session drops every listener, ours included.
        return self._subscription is not None and self.session.events.is_registered(CONSOLE_EVENT, _CONSOLE_KEY)

    @property
    def options(self) -> ConsoleStreamOptions | None:
        return self._subscription if self.active else None

    async def subscribe(
        self,
        levels: Iterable[str] | None = None,
        *,
        include_exceptions: bool | None = None,
        include_stack: bool | None = None,
    ) -> ConsoleStreamOptions:
        normalized = ConsoleStreamOptions.normalize(levels, include_exceptions, include_stack)
        await self.session.connect()
        await best_effort("Runtime.enable", self.session.enable_domain("Runtime"), log=logger)

        self._subscription = normalized
        # Keyed registration: a second subscribe keeps exactly one listener per event.
        events = self.session.events
        events.register(CONSOLE_EVENT, self._handle_console, key=_CONSOLE_KEY)
        events.register(EXCEPTION_EVENT, self._handle_exception, key=_EXCEPTION_KEY)
        logger.info("console_stream_subscribed levels=%s", ",".join(normalized.levels))
        return normalized

    def unsubscribe(self) -> bool:
        """Detach listeners; returns False when streaming was not active."""
        was_active = self.active
        events = self.session.events
        events.unregister(CONSOLE_EVENT, _CONSOLE_KEY)
        events.unregister(EXCEPTION_EVENT, _EXCEPTION_KEY)
        self._subscription = None
        if was_active:
            logger.info("console_stream_unsubscribed")
        return was_active

    def _handle_console(self, params: dict[str, Any]) -> None:
        sub = self._subscription
        if sub is None:
            return
        console_type = params.get("type")
        if stream_level(console_type) not in sub.levels:
            return
        stack = format_stack(params.get("stackTrace")) if sub.include_stack else None
        self._deliver(notification_level(console_type), format_console_message(params), stack)

    def _handle_exception(self, params: dict[str, Any]) -> None:
        sub = self._subscription
        if sub is None or not sub.include_exceptions:
            return
        details = params.get("exceptionDetails") if isinstance(params.get("exceptionDetails"), dict) else {}
        exception = details.get("exception") if isinstance(details.get("exception"), dict) else {}
        message = details.get("text") or exception.get("description") or "Unhandled exception"
        stack = format_stack(details.get("stackTrace")) if sub.include_stack else None
        self._deliver("error", f"[exception] {message}", stack)

    def _deliver(self, level: str, message: str, stack: str | None) -> None:
        composed = f"{message}\n{stack}" if stack else message
        try:
            result = self._notify(level, composed)
        except Exception as exc:  # noqa: BLE001
            logger.debug("console_notify_failed error=%s", exc)
            return
        if inspect.isawaitable(result):
            fut = asyncio.ensure_future(best_effort("console.notify", result, log=logger))
            self._inflight.add(fut)
            fut.add_done_callback(self._inflight.discard)


__all__ = [
    "ConsoleStreamManager",
    "ConsoleStreamOptions",
    "STREAM_LEVELS",
    "format_console_message",
    "format_stack",
    "notification_level",
    "stream_level",
]
