"""
Runtime tool handlers - evaluation, buffered logs, screenshots.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ...errors import EvaluationError
from ...page_session import LOG_KINDS, SCREENSHOT_FORMATS, LogEntry
from ..args import to_bool, to_int, to_optional_int, to_str_list
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices


def format_entries(entries: Iterable[LogEntry]) -> str:
    lines = []
    for entry in entries:
        parts = [
            f"#{entry.id}",
            entry.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            entry.kind.upper(),
            entry.level.upper(),
            entry.message,
        ]
        if entry.url:
            parts.append(f"@ {entry.url}")
        if entry.source:
            parts.append(f"[{entry.source}]")
        lines.append(" | ".join(parts))
    return "\n".join(lines) if lines else "No log entries collected yet."


async def handle_evaluate_expression(services: PageServices, args: dict[str, Any]) -> ToolResult:
    expression = args.get("expression")
    if not isinstance(expression, str) or not expression.strip():
        return ToolResult.error("Provide a JavaScript expression to evaluate.", tool="evaluate_expression")
    try:
        result = await services.session.evaluate(
            expression,
            await_promise=to_bool(args.get("awaitPromise"), default=True),
            return_by_value=to_bool(args.get("returnByValue"), default=True),
        )
    except EvaluationError as exc:
        return ToolResult.error(str(exc), tool="evaluate_expression")
    text = f"Type: {result.type}\nValue: {result.value}"
    if result.description:
        text += f"\nDescription: {result.description}"
    return ToolResult.text(text)


async def handle_list_logs(services: PageServices, args: dict[str, Any]) -> ToolResult:
    kinds = [k for k in to_str_list(args.get("kinds")) if k in LOG_KINDS]
    entries = services.session.get_entries(
        limit=to_int(args.get("limit"), default=20, min_v=1, max_v=200),
        kinds=kinds or None,
        newest_first=to_bool(args.get("newestFirst"), default=True),
    )
    return ToolResult.text(format_entries(entries))


async def handle_clear_logs(services: PageServices, args: dict[str, Any]) -> ToolResult:
    services.session.clear_entries()
    return ToolResult.text("Cleared log buffer.")


async def handle_take_screenshot(services: PageServices, args: dict[str, Any]) -> ToolResult:
    fmt = str(args.get("format") or "png").lower()
    if fmt not in SCREENSHOT_FORMATS:
        return ToolResult.error(f"Unsupported format: {fmt}", tool="take_screenshot", suggestion="Use png, jpeg or webp")
    quality = to_optional_int(args.get("quality"), min_v=0, max_v=100)
    if quality is not None and fmt == "png":
        return ToolResult.error(
            "The quality parameter is only supported for jpeg and webp captures.", tool="take_screenshot"
        )
    shot = await services.session.capture_screenshot(
        format=fmt,
        quality=quality,
        capture_beyond_viewport=to_bool(args.get("fullPage"), default=False),
    )
    return ToolResult.image(shot.data, shot.mime_type)


RUNTIME_HANDLERS: dict[str, tuple] = {
    "evaluate_expression": (handle_evaluate_expression, True),
    "list_logs": (handle_list_logs, False),
    "clear_logs": (handle_clear_logs, False),
    "take_screenshot": (handle_take_screenshot, True),
}
