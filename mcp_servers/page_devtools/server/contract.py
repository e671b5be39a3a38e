"""Protocol and tool contract definitions.

This is the single source of truth for:
- supported MCP protocol versions
- server identity
- capabilities advertised by initialize
- tool list
"""

from __future__ import annotations

from typing import Any

from .definitions import TOOL_DEFINITIONS

SERVER_INFO: dict[str, str] = {"name": "page-devtools", "version": "0.1.0"}

SUPPORTED_PROTOCOL_VERSIONS = ["0.1.0", "2025-06-18", "2024-11-05"]
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[1]
DEFAULT_PROTOCOL_VERSION = LATEST_PROTOCOL_VERSION

CAPABILITIES: dict[str, Any] = {
    "logging": {},
    "tools": {"listChanged": False},
}


def select_protocol(requested: Any) -> str:
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return DEFAULT_PROTOCOL_VERSION


def server_instructions(endpoint: str | None = None) -> str:
    lines = [
        "Page-scoped server that talks directly to one Chrome DevTools page socket.",
        "Provide the page WebSocket URL with --endpoint or PAGE_WS_ENDPOINT.",
    ]
    if endpoint:
        lines.append(f"Attached to: {endpoint}")
    lines.append("Tools: " + ", ".join(t["name"] for t in TOOL_DEFINITIONS) + ".")
    return "\n".join(lines)


def initialize_result(protocol: str, endpoint: str | None = None) -> dict[str, Any]:
    return {
        "protocolVersion": protocol,
        "serverInfo": SERVER_INFO,
        "capabilities": CAPABILITIES,
        "instructions": server_instructions(endpoint),
    }


def tools_list() -> list[dict[str, Any]]:
    return TOOL_DEFINITIONS
