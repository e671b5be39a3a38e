"""Best-effort operations: failures are logged and returned, never raised."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("mcp.page_devtools.best_effort")


@dataclass(slots=True, frozen=True)
class BestEffortResult:
    label: str
    ok: bool
    value: Any = None
    error: str | None = None


async def best_effort(label: str, awaitable: Awaitable[Any], *, log: logging.Logger | None = None) -> BestEffortResult:
    """Await ``awaitable``; on failure log at DEBUG and return ``ok=False``.

    Cancellation still propagates.
    """
    try:
        value = await awaitable
    except Exception as exc:  # noqa: BLE001
        (log or logger).debug("best_effort_failed op=%s error=%s", label, exc)
        return BestEffortResult(label=label, ok=False, error=str(exc) or type(exc).__name__)
    return BestEffortResult(label=label, ok=True, value=value)


__all__ = ["BestEffortResult", "best_effort"]
