"""
MCP server exposing one DevTools page over newline-delimited JSON-RPC on stdio.

This module provides the main entry point and protocol handling.
Tool dispatch is handled via registry pattern in server/registry.py.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from collections.abc import Callable, Sequence
from typing import Any

from .config import PageConfig
from .errors import PageDevtoolsError
from .page_session import Connector
from .server.contract import (
    DEFAULT_PROTOCOL_VERSION,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    initialize_result,
    select_protocol,
    tools_list,
)
from .server.registry import create_default_registry
from .server.types import ToolResult
from .services import PageServices

logger = logging.getLogger("mcp.page_devtools")

__all__ = [
    "SUPPORTED_PROTOCOL_VERSIONS",
    "LATEST_PROTOCOL_VERSION",
    "DEFAULT_PROTOCOL_VERSION",
    "McpServer",
    "main",
]

# RFC 5424 severities, as used by notifications/message.
LOG_LEVELS = ["debug", "info", "notice", "warning", "error", "critical", "alert", "emergency"]
_MAX_LOGGED_ARG_CHARS = 200


def _configure_logging() -> None:
    level_name = (os.environ.get("MCP_LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _write_message(payload: dict[str, Any]) -> None:
    """Write JSON-RPC message to stdout."""
    line = (json.dumps(payload, ensure_ascii=False) + "\n").encode()
    sys.stdout.buffer.write(line)
    sys.stdout.buffer.flush()


def _summarize_args(arguments: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in arguments.items():
        if isinstance(value, str) and len(value) > _MAX_LOGGED_ARG_CHARS:
            out[key] = value[:_MAX_LOGGED_ARG_CHARS] + f"...<{len(value)} chars>"
        else:
            out[key] = value
    return out


class McpServer:
    """MCP server with registry-based tool dispatch over one page session."""

    def __init__(
        self,
        config: PageConfig,
        *,
        connector: Connector | None = None,
        write: Callable[[dict[str, Any]], None] = _write_message,
    ) -> None:
        self.config = config
        self._write = write
        self.registry = create_default_registry()
        self.services = PageServices.create(config, self.notify_console, connector=connector)
        self.min_log_level = "debug"
        self._tasks: set[asyncio.Task] = set()

    def notify_console(self, level: str, message: str) -> None:
        """Forward one streamed console message as a notifications/message frame."""
        if LOG_LEVELS.index(level) < LOG_LEVELS.index(self.min_log_level):
            return
        self._write(
            {
                "jsonrpc": "2.0",
                "method": "notifications/message",
                "params": {"level": level, "logger": "console", "data": message},
            }
        )

    def handle_initialize(self, request_id: Any, params: dict[str, Any] | None = None) -> None:
        """Handle initialize request."""
        requested = (params or {}).get("protocolVersion") if isinstance(params, dict) else None
        protocol = select_protocol(requested)
        self._write({"jsonrpc": "2.0", "id": request_id, "result": initialize_result(protocol, self.config.endpoint)})

    def handle_list_tools(self, request_id: Any) -> None:
        """Handle tools/list request."""
        self._write({"jsonrpc": "2.0", "id": request_id, "result": {"tools": tools_list()}})

    def handle_set_level(self, request_id: Any, params: dict[str, Any]) -> None:
        level = params.get("level")
        if level not in LOG_LEVELS:
            self._write(
                {"jsonrpc": "2.0", "id": request_id, "error": {"code": -32602, "message": f"Invalid level: {level}"}}
            )
            return
        self.min_log_level = level
        self._write({"jsonrpc": "2.0", "id": request_id, "result": {}})

    async def handle_call_tool(self, request_id: Any, name: str, arguments: dict[str, Any]) -> None:
        """Handle tool call via registry dispatch."""
        logger.info("tool=%s args=%s", name, _summarize_args(arguments))

        try:
            if not name:
                result = ToolResult.error("Missing tool name")
            elif not self.registry.has(name):
                result = ToolResult.error(f"Unknown tool: {name}", tool=name)
            else:
                result = await self.registry.dispatch(name, self.services, arguments)
        except PageDevtoolsError as exc:
            logger.info("tool_error tool=%s error=%s", name, exc)
            result = ToolResult.error(str(exc), tool=name)
        except Exception as exc:
            logger.exception("tool_call_failed")
            result = ToolResult.error(str(exc) or type(exc).__name__, tool=name)

        self._write(
            {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": {"content": result.to_content_list(), "isError": result.is_error},
            }
        )

    async def dispatch(self, message: dict[str, Any]) -> None:
        """Dispatch incoming JSON-RPC message to appropriate handler."""
        if not message:
            return

        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}
        if not isinstance(params, dict):
            params = {}

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif method == "notifications/initialized" or (isinstance(method, str) and method.startswith("notifications/")):
            return
        elif method in ("tools/list", "list_tools"):
            self.handle_list_tools(request_id)
        elif method in ("tools/call", "call_tool"):
            name = params.get("name")
            arguments = params.get("arguments") or params.get("args") or {}
            await self.handle_call_tool(request_id, name or "", arguments if isinstance(arguments, dict) else {})
        elif method == "logging/setLevel":
            self.handle_set_level(request_id, params)
        elif method == "ping":
            self._write({"jsonrpc": "2.0", "id": request_id, "result": {}})
        else:
            self._write(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32601, "message": f"Method {method} not found"},
                }
            )

    def submit(self, message: dict[str, Any]) -> asyncio.Task:
        """Run one message as its own task so long tool calls do not block the reader."""
        task = asyncio.get_running_loop().create_task(self.dispatch(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def serve(self, read_line: Callable[[], bytes] | None = None) -> None:
        """Read frames until EOF, then wait for in-flight calls and dispose the page services."""
        reader = read_line or sys.stdin.buffer.readline
        try:
            while True:
                line = await asyncio.to_thread(reader)
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    message = json.loads(line.decode() if isinstance(line, bytes) else line)
                except (UnicodeDecodeError, ValueError) as exc:
                    logger.warning("invalid_frame error=%s", exc)
                    self._write({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}})
                    continue
                if not isinstance(message, dict):
                    continue
                if os.environ.get("MCP_TRACE"):
                    logger.info("recv %s", message)
                self.submit(message)
            await self.drain()
        finally:
            await self.services.dispose()


async def run(argv: Sequence[str], *, connector: Connector | None = None) -> int:
    try:
        config = PageConfig.from_env(argv)
    except PageDevtoolsError as exc:
        logger.error("invalid_configuration: %s", exc)
        return 1

    server = McpServer(config, connector=connector)
    try:
        # The first connection is mandatory; everything after it is per-call.
        await server.services.session.connect()
    except PageDevtoolsError as exc:
        logger.error("startup_connect_failed endpoint=%s error=%s", config.endpoint, exc)
        await server.services.dispose()
        return 1

    logger.info("page_devtools_ready endpoint=%s tools=%s", config.endpoint, len(server.registry))
    await server.serve()
    return 0


def main() -> None:
    """Main entry point for MCP server."""
    _configure_logging()
    try:
        code = asyncio.run(run(sys.argv[1:]))
    except KeyboardInterrupt:
        code = 0
    raise SystemExit(code)


if __name__ == "__main__":
    main()
