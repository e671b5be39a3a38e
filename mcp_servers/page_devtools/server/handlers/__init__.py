"""
Tool handlers organized by domain.

All handlers follow the signature: async (services, arguments) -> ToolResult
"""

from .console import CONSOLE_HANDLERS
from .dom import DOM_HANDLERS
from .navigation import NAVIGATION_HANDLERS
from .network import NETWORK_HANDLERS
from .overlay import OVERLAY_HANDLERS
from .runtime import RUNTIME_HANDLERS
from .storage import STORAGE_HANDLERS

# Aggregate all handlers
ALL_HANDLERS: dict[str, tuple] = {
    **RUNTIME_HANDLERS,
    **NAVIGATION_HANDLERS,
    **NETWORK_HANDLERS,
    **CONSOLE_HANDLERS,
    **OVERLAY_HANDLERS,
    **STORAGE_HANDLERS,
    **DOM_HANDLERS,
}

__all__ = [
    "ALL_HANDLERS",
    "CONSOLE_HANDLERS",
    "DOM_HANDLERS",
    "NAVIGATION_HANDLERS",
    "NETWORK_HANDLERS",
    "OVERLAY_HANDLERS",
    "RUNTIME_HANDLERS",
    "STORAGE_HANDLERS",
]
