"""
Overlay tool handlers - element highlight with auto-expiry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...errors import PageDevtoolsError
from ...overlay import HighlightOptions, HighlightResult, rgba_from_bytes
from ..args import to_bool, to_int, to_optional_int, to_str
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices

MAX_DURATION_MS = 600_000


def _options(services: PageServices, args: dict[str, Any]) -> HighlightOptions:
    return HighlightOptions(
        selector=to_str(args.get("selector")),
        node_id=to_optional_int(args.get("nodeId"), min_v=1, max_v=2**31 - 1),
        duration_ms=to_int(
            args.get("durationMs"),
            default=services.config.overlay_duration_ms,
            min_v=0,
            max_v=MAX_DURATION_MS,
        ),
        color=rgba_from_bytes(args.get("color")),
        border_color=rgba_from_bytes(args.get("borderColor")),
        show_info=to_bool(args.get("showInfo"), default=True),
        show_rulers=to_bool(args.get("showRulers"), default=False),
        include_margin=to_bool(args.get("includeMargin"), default=False),
        include_padding=to_bool(args.get("includePadding"), default=False),
        return_screenshot=to_bool(args.get("returnScreenshot"), default=True),
    )


def _describe(result: HighlightResult, target: str) -> str:
    if result.duration_ms > 0:
        return f"Highlighted {target} for {round(result.duration_ms / 1000)} seconds."
    return f"Highlighted {target} until overlay_hide is called."


async def handle_overlay_highlight(services: PageServices, args: dict[str, Any]) -> ToolResult:
    opts = _options(services, args)
    try:
        result = await services.overlay.highlight(opts)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to highlight: {exc}", tool="overlay_highlight")
    target = opts.selector if opts.selector and not opts.node_id else f"node {result.node_id}"
    return ToolResult.with_image(_describe(result, target), result.screenshot, result.mime_type or "image/png")


async def handle_overlay_highlight_focused(services: PageServices, args: dict[str, Any]) -> ToolResult:
    opts = _options(services, args)
    try:
        result = await services.overlay.highlight_focused(opts)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to highlight focused element: {exc}", tool="overlay_highlight_focused")
    return ToolResult.with_image(_describe(result, "focused element"), result.screenshot, result.mime_type or "image/png")


async def handle_overlay_hide(services: PageServices, args: dict[str, Any]) -> ToolResult:
    await services.overlay.hide()
    return ToolResult.text("Overlay hidden.")


OVERLAY_HANDLERS: dict[str, tuple] = {
    "overlay_highlight": (handle_overlay_highlight, True),
    "overlay_highlight_focused": (handle_overlay_highlight_focused, True),
    "overlay_hide": (handle_overlay_hide, False),
}
