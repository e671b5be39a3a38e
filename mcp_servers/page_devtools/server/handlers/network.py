"""
Network capture tool handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...network_recorder import NetworkRequestRecord, filter_requests
from ..args import to_bool, to_int, to_str, to_str_list
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices


def _format_headers(headers: dict[str, Any]) -> str:
    return "\n".join(f"  {key}: {value}" for key, value in headers.items())


def format_request(record: NetworkRequestRecord, include_headers: bool = False) -> str:
    if record.status:
        status = f"{record.status} {record.statusText or ''}".strip()
    else:
        status = record.errorText or "pending"
    if record.errorText and record.status:
        status = f"{status} ({record.errorText})"
    duration = ""
    if record.startTime and record.endTime and record.endTime >= record.startTime:
        duration = f" ({(record.endTime - record.startTime) * 1000:.0f} ms)"

    lines = [f"{record.requestId} | {record.method} {record.url}", f"status: {status}{duration}"]
    if record.resourceType:
        lines.append(f"type: {record.resourceType}")
    if record.encodedDataLength is not None:
        lines.append(f"size: {record.encodedDataLength:.0f} bytes")
    if record.fromCache:
        lines.append("from cache")
    if include_headers:
        if record.requestHeaders:
            lines.extend(["request headers:", _format_headers(record.requestHeaders)])
        if record.responseHeaders:
            lines.extend(["response headers:", _format_headers(record.responseHeaders)])
    return "\n".join(lines)


async def handle_network_start_capture(services: PageServices, args: dict[str, Any]) -> ToolResult:
    await services.network.start()
    return ToolResult.text("Network capture started.")


async def handle_network_stop_capture(services: PageServices, args: dict[str, Any]) -> ToolResult:
    services.network.stop()
    count = len(services.network.get_requests())
    return ToolResult.text(f"Network capture stopped. Recorded {count} request{'' if count == 1 else 's'}.")


async def handle_network_clear_capture(services: PageServices, args: dict[str, Any]) -> ToolResult:
    services.network.clear()
    return ToolResult.text("Cleared captured network requests.")


async def handle_network_list_requests(services: PageServices, args: dict[str, Any]) -> ToolResult:
    selected = filter_requests(
        services.network.get_requests(),
        limit=to_int(args.get("limit"), default=20, min_v=1, max_v=200),
        methods=to_str_list(args.get("methods")),
        resource_types=to_str_list(args.get("resourceTypes")),
        only_failed=to_bool(args.get("onlyFailed"), default=False),
    )
    if not selected:
        return ToolResult.text("No requests matched the specified filters.")
    include_headers = to_bool(args.get("includeHeaders"), default=False)
    text = "\n\n".join(format_request(r, include_headers) for r in selected)
    return ToolResult.text(text, data=[r.to_dict() for r in selected])


async def handle_network_get_request_body(services: PageServices, args: dict[str, Any]) -> ToolResult:
    request_id = to_str(args.get("requestId"))
    if not request_id:
        return ToolResult.error("Provide the requestId from network_list_requests.", tool="network_get_request_body")

    if str(args.get("kind") or "response") == "request":
        data = await services.network.get_request_post_data(request_id)
        if data is None:
            return ToolResult.error("No request body available or request not found.", tool="network_get_request_body")
        return ToolResult.text(data)

    body = await services.network.get_response_body(request_id)
    if body is None:
        return ToolResult.error("No response body available or request not found.", tool="network_get_request_body")
    if body["base64Encoded"]:
        return ToolResult.text("(Response body is base64 encoded; returning inline base64.)", body["body"])
    return ToolResult.text(body["body"])


NETWORK_HANDLERS: dict[str, tuple] = {
    "network_start_capture": (handle_network_start_capture, True),
    "network_stop_capture": (handle_network_stop_capture, False),
    "network_clear_capture": (handle_network_clear_capture, False),
    "network_list_requests": (handle_network_list_requests, False),
    "network_get_request_body": (handle_network_get_request_body, True),
}
