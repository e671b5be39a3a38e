"""
DOM tool handlers - click, set text, outer HTML, event listeners, focused text input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...errors import PageDevtoolsError
from ..args import to_bool, to_int, to_str, to_str_list
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices

MAX_INSERT_TEXT_CHARS = 256
MAX_LISTENERS = 200


def _index_suffix(args: dict[str, Any], index: int) -> str:
    return f" (index {index})" if args.get("index") is not None else ""


async def handle_dom_click(services: PageServices, args: dict[str, Any]) -> ToolResult:
    selector = to_str(args.get("selector"))
    if not selector:
        return ToolResult.error("Provide a CSS selector targeting an element.", tool="dom_click")
    index = to_int(args.get("index"), default=0, min_v=0, max_v=10_000)
    try:
        await services.dom.click(selector, index=index)
    except PageDevtoolsError as exc:
        return ToolResult.error(str(exc), tool="dom_click")
    return ToolResult.text(f"Clicked element {selector}{_index_suffix(args, index)}.")


async def handle_dom_type_text(services: PageServices, args: dict[str, Any]) -> ToolResult:
    selector = to_str(args.get("selector"))
    text = args.get("text")
    if not selector:
        return ToolResult.error("Provide a CSS selector targeting an element.", tool="dom_type_text")
    if not isinstance(text, str):
        return ToolResult.error("Provide the text to insert.", tool="dom_type_text")
    index = to_int(args.get("index"), default=0, min_v=0, max_v=10_000)
    replace = to_bool(args.get("replace"), default=True)
    submit = to_bool(args.get("submit"), default=False)
    try:
        await services.dom.type_text(selector, text, index=index, replace=replace, submit=submit)
    except PageDevtoolsError as exc:
        return ToolResult.error(str(exc), tool="dom_type_text")
    action = "Set" if replace else "Appended"
    suffix = " and submitted form" if submit else ""
    return ToolResult.text(f"{action} text on {selector}{_index_suffix(args, index)}{suffix}.")


async def handle_dom_get_outer_html(services: PageServices, args: dict[str, Any]) -> ToolResult:
    selector = to_str(args.get("selector"))
    if not selector:
        return ToolResult.error("Provide a CSS selector (e.g., #app, .button).", tool="dom_get_outer_html")
    try:
        html = await services.dom.outer_html(selector)
    except PageDevtoolsError as exc:
        return ToolResult.error(str(exc), tool="dom_get_outer_html")
    return ToolResult.text(html)


async def handle_dom_list_event_listeners(services: PageServices, args: dict[str, Any]) -> ToolResult:
    target = to_str(args.get("target")) or "selector"
    include_ancestors = to_bool(args.get("includeAncestors"), default=False)
    depth = to_int(args.get("depth"), default=1, min_v=0, max_v=10)
    limit = to_int(args.get("maxListeners"), default=50, min_v=1, max_v=MAX_LISTENERS)
    try:
        listeners = await services.dom.list_event_listeners(
            target,
            to_str(args.get("selector")),
            depth=depth if include_ancestors else 0,
            event_types=to_str_list(args.get("eventTypes")) or None,
        )
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to list event listeners: {exc}", tool="dom_list_event_listeners")
    if not listeners:
        return ToolResult.text("No event listeners found for the specified target.")
    blocks = [item.describe(i) for i, item in enumerate(listeners[:limit], start=1)]
    if len(listeners) > limit:
        blocks.append(f"... {len(listeners) - limit} more listener(s) truncated.")
    return ToolResult.text("\n\n".join(blocks))


async def handle_remote_type_text(services: PageServices, args: dict[str, Any]) -> ToolResult:
    text = args.get("text")
    if not isinstance(text, str) or not text:
        return ToolResult.error("Provide text to send.", tool="remote_type_text")
    if len(text) > MAX_INSERT_TEXT_CHARS:
        return ToolResult.error(
            f"Limit text to {MAX_INSERT_TEXT_CHARS} characters for remote input.", tool="remote_type_text"
        )
    await services.dom.insert_text(text)
    return ToolResult.text(f"Typed {len(text)} character{'' if len(text) == 1 else 's'}.")


DOM_HANDLERS: dict[str, tuple] = {
    "dom_click": (handle_dom_click, True),
    "dom_type_text": (handle_dom_type_text, True),
    "dom_get_outer_html": (handle_dom_get_outer_html, True),
    "dom_list_event_listeners": (handle_dom_list_event_listeners, True),
    "remote_type_text": (handle_remote_type_text, True),
}
