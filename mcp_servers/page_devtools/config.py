from __future__ import annotations

import os
import urllib.parse
from collections.abc import Sequence
from dataclasses import dataclass

from .errors import InvalidArgumentsError

MAX_BUFFERED_ENTRIES = 500
DEFAULT_OVERLAY_DURATION_MS = 2 * 60 * 1000


def _env_float(name: str, default: float, *, min_v: float, max_v: float) -> float:
    try:
        value = float(os.environ.get(name) or default)
    except Exception:
        value = default
    return max(min_v, min(value, max_v))


def resolve_endpoint(argv: Sequence[str]) -> str | None:
    """Pick the page endpoint from CLI flags, then PAGE_WS_ENDPOINT."""
    args = list(argv)
    for arg in args:
        if arg.startswith("--endpoint="):
            return arg.split("=", 1)[1]
        if arg.startswith("--page-ws-endpoint="):
            return arg.split("=", 1)[1]
    for i, arg in enumerate(args):
        if arg in {"--endpoint", "--page-ws-endpoint"} and i + 1 < len(args):
            return args[i + 1]
    return os.environ.get("PAGE_WS_ENDPOINT")


def validate_endpoint(endpoint: str | None) -> str:
    if not endpoint:
        raise InvalidArgumentsError(
            "Missing page WebSocket endpoint. Pass --endpoint ws://... or set PAGE_WS_ENDPOINT."
        )
    parsed = urllib.parse.urlparse(endpoint)
    if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
        raise InvalidArgumentsError(f"Invalid --endpoint value: WebSocket endpoint must use ws:// or wss:// ({endpoint})")
    return endpoint


@dataclass
class PageConfig:
    endpoint: str
    command_timeout: float = 10.0
    connect_timeout: float = 5.0
    max_log_entries: int = MAX_BUFFERED_ENTRIES
    overlay_duration_ms: int = DEFAULT_OVERLAY_DURATION_MS

    @classmethod
    def from_env(cls, argv: Sequence[str] = ()) -> PageConfig:
        endpoint = validate_endpoint(resolve_endpoint(argv))
        return cls(
            endpoint=endpoint,
            command_timeout=_env_float("MCP_CDP_TIMEOUT", 10.0, min_v=0.5, max_v=300.0),
            connect_timeout=_env_float("MCP_CDP_CONNECT_TIMEOUT", 5.0, min_v=0.5, max_v=60.0),
        )
