"""
Type definitions for MCP server responses and handlers.
"""

from __future__ import annotations

import json as _json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..services import PageServices


@dataclass(slots=True)
class ToolContent:
    """Single content item in tool response."""

    type: str  # "text" or "image"
    text: str | None = None
    data: str | None = None  # base64 for images
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP content format."""
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


@dataclass(slots=True)
class ToolResult:
    """Result of a tool execution."""

    content: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    # Raw payload for in-process callers; not part of the wire format.
    data: Any | None = None

    @classmethod
    def text(cls, *texts: str, data: Any | None = None) -> ToolResult:
        """One text content item per argument."""
        return cls(content=[ToolContent(type="text", text=t or "") for t in texts], data=data)

    @classmethod
    def error(cls, message: str, *, tool: str | None = None, suggestion: str | None = None) -> ToolResult:
        text = message or "Tool failed"
        if suggestion:
            text = f"{text}\nSuggestion: {suggestion}"
        payload: dict[str, Any] = {"ok": False, "error": message}
        if tool:
            payload["tool"] = tool
        return cls(content=[ToolContent(type="text", text=text)], is_error=True, data=payload)

    @classmethod
    def json(cls, data: Any) -> ToolResult:
        text = _json.dumps(data, ensure_ascii=False, indent=2, default=str)
        return cls(content=[ToolContent(type="text", text=text)], data=data)

    @classmethod
    def image(cls, data_b64: str, mime_type: str = "image/png") -> ToolResult:
        """Create result with single image content. Falls back to an error if data is empty."""
        if not data_b64:
            return cls.error("Screenshot data is empty")
        return cls(content=[ToolContent(type="image", data=data_b64, mime_type=mime_type)])

    @classmethod
    def with_image(cls, text: str, data_b64: str | None, mime_type: str = "image/png", data: Any | None = None) -> ToolResult:
        """Create result with text and image content. Omits image if data is empty."""
        content = [ToolContent(type="text", text=text or "")]
        if data_b64:
            content.append(ToolContent(type="image", data=data_b64, mime_type=mime_type))
        return cls(content=content, data=data)

    def to_content_list(self) -> list[dict[str, Any]]:
        """Convert to MCP content list format."""
        return [c.to_dict() for c in self.content]


HandlerFunc = Callable[["PageServices", dict[str, Any]], Awaitable[ToolResult]]


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Specification for a registered tool."""

    name: str
    handler: HandlerFunc
    requires_connection: bool = True  # Whether to connect the page session before the handler
