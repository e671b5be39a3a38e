"""Tool schema definitions."""

from __future__ import annotations

from typing import Any

_SCHEMA = "http://json-schema.org/draft-07/schema#"

_RGBA = {
    "type": "array",
    "items": {"type": "number", "minimum": 0, "maximum": 255},
    "minItems": 4,
    "maxItems": 4,
}


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"$schema": _SCHEMA, "type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


RUNTIME_TOOLS: list[dict[str, Any]] = [
    {
        "name": "evaluate_expression",
        "description": "Evaluate a JavaScript expression in the attached page.",
        "inputSchema": _schema(
            {
                "expression": {"type": "string", "minLength": 1, "description": "JavaScript expression to evaluate"},
                "awaitPromise": {"type": "boolean", "default": True, "description": "Await promise results before returning"},
                "returnByValue": {
                    "type": "boolean",
                    "default": True,
                    "description": "Return primitive values instead of object previews",
                },
            },
            ["expression"],
        ),
    },
    {
        "name": "list_logs",
        "description": "List buffered console messages, runtime exceptions, and log entries.",
        "inputSchema": _schema(
            {
                "limit": {"type": "integer", "minimum": 1, "maximum": 200, "default": 20},
                "kinds": {
                    "type": "array",
                    "items": {"type": "string", "enum": ["console", "exception", "log"]},
                    "description": "Filter by entry kinds",
                },
                "newestFirst": {"type": "boolean", "default": True, "description": "Return newest entries first"},
            }
        ),
    },
    {
        "name": "clear_logs",
        "description": "Clear the buffered log entries.",
        "inputSchema": _schema(),
    },
    {
        "name": "take_screenshot",
        "description": "Capture a screenshot of the attached page.",
        "inputSchema": _schema(
            {
                "format": {"type": "string", "enum": ["png", "jpeg", "webp"], "default": "png"},
                "quality": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 100,
                    "description": "Quality (0-100) for jpeg/webp screenshots",
                },
                "fullPage": {"type": "boolean", "default": False, "description": "Capture beyond the viewport"},
            }
        ),
    },
]

NAVIGATION_TOOLS: list[dict[str, Any]] = [
    {
        "name": "page_navigate",
        "description": "Navigate the page to a new URL.",
        "inputSchema": _schema(
            {
                "url": {"type": "string", "description": "Absolute URL (e.g. https://example.com)"},
                "waitForLoad": {"type": "boolean", "default": True},
                "timeoutMs": {"type": "integer", "minimum": 0, "maximum": 120000, "default": 15000},
            },
            ["url"],
        ),
    },
    {
        "name": "page_reload",
        "description": "Reload the current page.",
        "inputSchema": _schema(
            {
                "ignoreCache": {"type": "boolean", "default": False},
                "waitForLoad": {"type": "boolean", "default": True},
                "timeoutMs": {"type": "integer", "minimum": 0, "maximum": 120000, "default": 15000},
            }
        ),
    },
]

NETWORK_TOOLS: list[dict[str, Any]] = [
    {
        "name": "network_start_capture",
        "description": "Begin capturing network activity for the current page.",
        "inputSchema": _schema(),
    },
    {
        "name": "network_stop_capture",
        "description": "Stop capturing network activity.",
        "inputSchema": _schema(),
    },
    {
        "name": "network_clear_capture",
        "description": "Clear captured network requests.",
        "inputSchema": _schema(),
    },
    {
        "name": "network_list_requests",
        "description": "List captured network requests with optional filtering.",
        "inputSchema": _schema(
            {
                "limit": {"type": "integer", "minimum": 1, "maximum": 200, "default": 20},
                "includeHeaders": {"type": "boolean", "default": False},
                "methods": {"type": "array", "items": {"type": "string"}, "description": "e.g. GET, POST"},
                "onlyFailed": {"type": "boolean", "default": False},
                "resourceTypes": {"type": "array", "items": {"type": "string"}, "description": "e.g. XHR, Document"},
            }
        ),
    },
    {
        "name": "network_get_request_body",
        "description": "Retrieve the response or request body for a captured request.",
        "inputSchema": _schema(
            {
                "requestId": {"type": "string", "minLength": 1},
                "kind": {"type": "string", "enum": ["response", "request"], "default": "response"},
            },
            ["requestId"],
        ),
    },
]

CONSOLE_TOOLS: list[dict[str, Any]] = [
    {
        "name": "console_subscribe",
        "description": "Begin streaming console output in real time as notifications/message.",
        "inputSchema": _schema(
            {
                "levels": {
                    "type": "array",
                    "items": {"type": "string", "enum": ["log", "debug", "info", "warn", "error"]},
                    "description": "Console levels to stream. Default: all.",
                },
                "includeExceptions": {"type": "boolean", "default": True},
                "includeStack": {"type": "boolean", "default": False},
            }
        ),
    },
    {
        "name": "console_unsubscribe",
        "description": "Stop streaming console output.",
        "inputSchema": _schema(),
    },
    {
        "name": "console_stream_status",
        "description": "Report current console streaming status.",
        "inputSchema": _schema(),
    },
]

_HIGHLIGHT_PROPS: dict[str, Any] = {
    "durationMs": {"type": "integer", "minimum": 0, "maximum": 600000, "default": 120000},
    "includeMargin": {"type": "boolean", "default": False},
    "includePadding": {"type": "boolean", "default": False},
    "showInfo": {"type": "boolean", "default": True},
    "showRulers": {"type": "boolean", "default": False},
    "color": {**_RGBA, "description": "RGBA fill color (0-255 each component)"},
    "borderColor": {**_RGBA, "description": "RGBA border color (0-255 each component)"},
    "returnScreenshot": {"type": "boolean", "default": True},
}

OVERLAY_TOOLS: list[dict[str, Any]] = [
    {
        "name": "overlay_highlight",
        "description": "Highlight the element matching a selector (or a DOM nodeId).",
        "inputSchema": _schema(
            {
                "selector": {"type": "string", "minLength": 1},
                "nodeId": {"type": "integer", "minimum": 1},
                **_HIGHLIGHT_PROPS,
            }
        ),
    },
    {
        "name": "overlay_highlight_focused",
        "description": "Highlight the currently focused element (document.activeElement).",
        "inputSchema": _schema(dict(_HIGHLIGHT_PROPS)),
    },
    {
        "name": "overlay_hide",
        "description": "Hide any active overlay highlight immediately.",
        "inputSchema": _schema(),
    },
]

_LOCAL_STORAGE_KEY = {"type": "string", "minLength": 1}

STORAGE_TOOLS: list[dict[str, Any]] = [
    {
        "name": "storage_list_cookies",
        "description": "List cookies available to the current page context.",
        "inputSchema": _schema({"url": {"type": "string", "description": "Optional URL to scope cookies"}}),
    },
    {
        "name": "storage_set_cookie",
        "description": "Create or update a cookie for the current browser context.",
        "inputSchema": _schema(
            {
                "url": {"type": "string", "description": "URL used to scope the cookie"},
                "name": {"type": "string", "minLength": 1},
                "value": {"type": "string", "default": ""},
                "domain": {"type": "string"},
                "path": {"type": "string"},
                "secure": {"type": "boolean", "default": False},
                "httpOnly": {"type": "boolean", "default": False},
                "sameSite": {"type": "string", "enum": ["Strict", "Lax", "None"]},
                "expires": {"type": "integer", "description": "Unix timestamp (seconds) when the cookie expires"},
            },
            ["url", "name"],
        ),
    },
    {
        "name": "storage_delete_cookie",
        "description": "Delete a cookie by name and optional scope.",
        "inputSchema": _schema(
            {
                "name": {"type": "string", "minLength": 1},
                "url": {"type": "string"},
                "domain": {"type": "string"},
                "path": {"type": "string"},
            },
            ["name"],
        ),
    },
    {
        "name": "storage_clear_cookies",
        "description": "Clear all browser cookies for the current session.",
        "inputSchema": _schema(),
    },
    {
        "name": "storage_list_local_storage",
        "description": "List all key/value pairs from window.localStorage.",
        "inputSchema": _schema(),
    },
    {
        "name": "storage_set_local_storage",
        "description": "Set a localStorage key to a string value.",
        "inputSchema": _schema({"key": _LOCAL_STORAGE_KEY, "value": {"type": "string", "default": ""}}, ["key"]),
    },
    {
        "name": "storage_remove_local_storage",
        "description": "Remove a key from localStorage if it exists.",
        "inputSchema": _schema({"key": _LOCAL_STORAGE_KEY}, ["key"]),
    },
]

_SELECTOR_PROPS: dict[str, Any] = {
    "selector": {"type": "string", "minLength": 1, "description": "CSS selector targeting an element"},
    "index": {"type": "integer", "minimum": 0, "description": "Zero-based index when multiple elements match"},
}

DOM_TOOLS: list[dict[str, Any]] = [
    {
        "name": "dom_click",
        "description": "Trigger a click on the element matched by a selector.",
        "inputSchema": _schema(dict(_SELECTOR_PROPS), ["selector"]),
    },
    {
        "name": "dom_type_text",
        "description": "Set or append text content in an element matched by a selector.",
        "inputSchema": _schema(
            {
                **_SELECTOR_PROPS,
                "text": {"type": "string", "description": "Text to insert into the element"},
                "replace": {"type": "boolean", "default": True, "description": "Replace (true) or append (false)"},
                "submit": {"type": "boolean", "default": False, "description": "Submit the containing form"},
            },
            ["selector", "text"],
        ),
    },
    {
        "name": "dom_get_outer_html",
        "description": "Return the full outer HTML of the first matching element.",
        "inputSchema": _schema({"selector": _SELECTOR_PROPS["selector"]}, ["selector"]),
    },
    {
        "name": "dom_list_event_listeners",
        "description": "List DOM event listeners attached to an element, document, or window.",
        "inputSchema": _schema(
            {
                "target": {"type": "string", "enum": ["selector", "document", "window"], "default": "selector"},
                "selector": {"type": "string", "minLength": 1},
                "includeAncestors": {"type": "boolean", "default": False},
                "depth": {"type": "integer", "minimum": 0, "maximum": 10, "default": 1},
                "eventTypes": {"type": "array", "items": {"type": "string"}, "description": "e.g. click, keydown"},
                "maxListeners": {"type": "integer", "minimum": 1, "maximum": 200, "default": 50},
            }
        ),
    },
    {
        "name": "remote_type_text",
        "description": "Insert text into the focused element as one text input event.",
        "inputSchema": _schema({"text": {"type": "string", "minLength": 1, "maxLength": 256}}, ["text"]),
    },
]

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    *RUNTIME_TOOLS,
    *NAVIGATION_TOOLS,
    *NETWORK_TOOLS,
    *CONSOLE_TOOLS,
    *OVERLAY_TOOLS,
    *STORAGE_TOOLS,
    *DOM_TOOLS,
]
