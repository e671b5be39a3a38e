"""
Console streaming tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..args import to_bool, to_str_list
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices


async def handle_console_subscribe(services: PageServices, args: dict[str, Any]) -> ToolResult:
    levels = to_str_list(args.get("levels"))
    options = await services.console.subscribe(
        levels or None,
        include_exceptions=to_bool(args.get("includeExceptions"), default=True),
        include_stack=to_bool(args.get("includeStack"), default=False),
    )
    return ToolResult.text(f"Console streaming enabled ({', '.join(options.levels)})", data=options.to_dict())


async def handle_console_unsubscribe(services: PageServices, args: dict[str, Any]) -> ToolResult:
    if not services.console.unsubscribe():
        return ToolResult.text("Console streaming was not active.")
    return ToolResult.text("Console streaming disabled.")


async def handle_console_stream_status(services: PageServices, args: dict[str, Any]) -> ToolResult:
    opts = services.console.options
    if opts is None:
        return ToolResult.text("Console streaming is inactive.")
    return ToolResult.text(
        f"Console streaming active. Levels: {', '.join(opts.levels)}; "
        f"includeExceptions={str(opts.include_exceptions).lower()}; "
        f"includeStack={str(opts.include_stack).lower()}"
    )


CONSOLE_HANDLERS: dict[str, tuple] = {
    "console_subscribe": (handle_console_subscribe, True),
    "console_unsubscribe": (handle_console_unsubscribe, False),
    "console_stream_status": (handle_console_stream_status, False),
}
