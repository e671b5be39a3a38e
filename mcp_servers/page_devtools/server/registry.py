"""
Tool registry with dispatch table for the MCP server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .types import HandlerFunc, ToolResult, ToolSpec

if TYPE_CHECKING:
    from ..services import PageServices

logger = logging.getLogger("mcp.page_devtools.registry")


class ToolRegistry:
    """Registry for tool handlers with lazy page connection."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, name: str, handler: HandlerFunc, requires_connection: bool = True) -> None:
        """Register a tool handler."""
        self._tools[name] = ToolSpec(name=name, handler=handler, requires_connection=requires_connection)

    def register_many(self, handlers: dict[str, tuple[HandlerFunc, bool]]) -> None:
        """Register multiple handlers at once."""
        for name, (handler, requires_connection) in handlers.items():
            self.register(name, handler, requires_connection)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if handler exists."""
        return name in self._tools

    async def dispatch(self, name: str, services: PageServices, arguments: dict[str, Any]) -> ToolResult:
        """
        Dispatch tool call to appropriate handler.

        Raises:
            KeyError: If tool not found
        """
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")

        # Connection failures surface to this call only; the next call retries from scratch.
        if spec.requires_connection:
            await services.session.connect()

        return await spec.handler(services, arguments)

    def tool_names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)


def create_default_registry() -> ToolRegistry:
    from .handlers import ALL_HANDLERS

    registry = ToolRegistry()
    registry.register_many(ALL_HANDLERS)
    logger.debug("registry_ready tools=%s", len(registry))
    return registry
