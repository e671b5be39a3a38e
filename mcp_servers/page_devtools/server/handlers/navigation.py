"""
Navigation tool handlers - page navigation and reload.
"""

from __future__ import annotations

import urllib.parse
from typing import TYPE_CHECKING, Any

from ...errors import PageDevtoolsError
from ...page_session import MAX_LOAD_TIMEOUT_MS
from ..args import to_bool, to_int, to_str
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices


def _load_args(args: dict[str, Any]) -> tuple[bool, int]:
    wait = to_bool(args.get("waitForLoad"), default=True)
    timeout_ms = to_int(args.get("timeoutMs"), default=15_000, min_v=0, max_v=MAX_LOAD_TIMEOUT_MS)
    return wait, timeout_ms


async def handle_page_navigate(services: PageServices, args: dict[str, Any]) -> ToolResult:
    url = to_str(args.get("url"))
    parsed = urllib.parse.urlparse(url or "")
    if not parsed.scheme or not (parsed.netloc or parsed.scheme in {"about", "data", "file"}):
        return ToolResult.error(
            "Provide a valid URL (e.g., https://example.com).", tool="page_navigate"
        )
    wait, timeout_ms = _load_args(args)
    try:
        await services.session.navigate(url, wait_for_load=wait, timeout_ms=timeout_ms)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Navigation failed: {exc}", tool="page_navigate")
    waited = wait and timeout_ms > 0
    return ToolResult.text(f"Navigated to {url}{' (waited for load event).' if waited else '.'}")


async def handle_page_reload(services: PageServices, args: dict[str, Any]) -> ToolResult:
    ignore_cache = to_bool(args.get("ignoreCache"), default=False)
    wait, timeout_ms = _load_args(args)
    try:
        await services.session.reload(ignore_cache=ignore_cache, wait_for_load=wait, timeout_ms=timeout_ms)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Reload failed: {exc}", tool="page_reload")
    waited = wait and timeout_ms > 0
    suffix = " and waited for load event." if waited else "."
    return ToolResult.text(f"Reloaded page{' (cache ignored)' if ignore_cache else ''}{suffix}")


NAVIGATION_HANDLERS: dict[str, tuple] = {
    "page_navigate": (handle_page_navigate, True),
    "page_reload": (handle_page_reload, True),
}
