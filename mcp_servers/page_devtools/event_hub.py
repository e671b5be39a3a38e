"""Per-event-class dispatch table for unsolicited CDP events.

Each CDP event name (e.g. ``Runtime.consoleAPICalled``) is a channel. A handler
is stored under an explicit key, so registering the same key twice keeps one
handler and one delivery per upstream event.

Handlers run synchronously in arrival order. They must finish their state
mutation without awaiting, otherwise a later event could overtake them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger("mcp.page_devtools.events")

EventHandler = Callable[[dict[str, Any]], None]


class EventHub:
    def __init__(self) -> None:
        self._channels: dict[str, dict[Hashable, EventHandler]] = {}

    def register(self, event: str, handler: EventHandler, *, key: Hashable | None = None) -> Hashable:
        """Attach ``handler`` to ``event``; a no-op when ``key`` is already attached."""
        k = handler if key is None else key
        channel = self._channels.setdefault(event, {})
        if k not in channel:
            channel[k] = handler
        return k

    def unregister(self, event: str, key: Hashable) -> bool:
        channel = self._channels.get(event)
        if not channel or key not in channel:
            return False
        del channel[key]
        if not channel:
            self._channels.pop(event, None)
        return True

    def is_registered(self, event: str, key: Hashable) -> bool:
        return key in self._channels.get(event, {})

    def listener_count(self, event: str) -> int:
        return len(self._channels.get(event, {}))

    def clear(self) -> None:
        self._channels.clear()

    def emit(self, event: str, params: dict[str, Any]) -> int:
        """Deliver one event to every handler on its channel; returns the delivery count."""
        channel = self._channels.get(event)
        if not channel:
            return 0
        delivered = 0
        # Snapshot: handlers may unregister themselves while running.
        for key, handler in list(channel.items()):
            try:
                handler(params)
                delivered += 1
            except Exception:
                logger.exception("event_handler_failed event=%s key=%r", event, key)
        return delivered


__all__ = ["EventHandler", "EventHub"]
