"""Single active element highlight with auto-expiry.

States: idle -> highlighted (remote highlight applied, element decorated,
timer armed) -> idle (``hide()`` or timer expiry). ``highlight()`` always goes
through idle first.

Decoration is an inline outline/box-shadow override on the element. The
element's previous inline values are kept here, keyed by node id, and written
back on hide; nothing is stored on the page element itself.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .best_effort import best_effort
from .config import DEFAULT_OVERLAY_DURATION_MS
from .errors import InvalidArgumentsError, NotFoundError

if TYPE_CHECKING:
    from .page_session import PageSession

logger = logging.getLogger("mcp.page_devtools.overlay")

OBJECT_GROUP = "page-devtools-overlay"

DEFAULT_BORDER_COLOR = {"r": 255, "g": 0, "b": 0, "a": 0.8}
DEFAULT_CONTENT_COLOR = {"r": 255, "g": 0, "b": 0, "a": 0.15}
MARGIN_COLOR = {"r": 128, "g": 128, "b": 128, "a": 0.3}
PADDING_COLOR = {"r": 0, "g": 128, "b": 255, "a": 0.25}

DECORATION_OUTLINE = "3px solid rgba(255, 0, 0, 0.9)"
DECORATION_OUTLINE_OFFSET = "2px"
DECORATION_SHADOW = "0 0 0 4px rgba(255, 0, 0, 0.35)"

_DECORATE_FN = """function(outline, offset, shadow) {
  if (!this || !this.style) return null;
  const prev = {
    outline: this.style.outline,
    outlineOffset: this.style.outlineOffset,
    boxShadow: this.style.boxShadow,
  };
  this.style.outline = outline;
  this.style.outlineOffset = offset;
  this.style.boxShadow = shadow;
  return prev;
}"""

_RESTORE_FN = """function(outline, offset, shadow) {
  if (!this || !this.style) return false;
  this.style.outline = outline;
  this.style.outlineOffset = offset;
  this.style.boxShadow = shadow;
  return true;
}"""


def rgba_from_bytes(components: Any) -> dict[str, float] | None:
    """``[r, g, b, a]`` with every component 0-255 -> CDP RGBA (alpha 0-1)."""
    if not isinstance(components, (list, tuple)) or len(components) != 4:
        return None
    try:
        r, g, b, a = (max(0, min(255, int(c))) for c in components)
    except (TypeError, ValueError):
        return None
    return {"r": r, "g": g, "b": b, "a": round(a / 255, 3)}


@dataclass(slots=True)
class HighlightOptions:
    selector: str | None = None
    node_id: int | None = None
    duration_ms: int = DEFAULT_OVERLAY_DURATION_MS
    color: dict[str, float] | None = None
    border_color: dict[str, float] | None = None
    show_info: bool = True
    show_rulers: bool = False
    include_margin: bool = False
    include_padding: bool = False
    return_screenshot: bool = True

    def highlight_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "borderColor": self.border_color or DEFAULT_BORDER_COLOR,
            "contentColor": self.color or DEFAULT_CONTENT_COLOR,
            "showInfo": bool(self.show_info),
            "showRulers": bool(self.show_rulers),
            "showExtensionLines": False,
            "showStyles": False,
        }
        if self.include_margin:
            config["marginColor"] = MARGIN_COLOR
        if self.include_padding:
            config["paddingColor"] = PADDING_COLOR
        return config


@dataclass(slots=True, frozen=True)
class HighlightResult:
    node_id: int
    duration_ms: int
    decorated: bool
    screenshot: str | None = None
    mime_type: str | None = None


@dataclass(slots=True, frozen=True)
class DecorationSnapshot:
    node_id: int
    epoch: int
    outline: str = ""
    outline_offset: str = ""
    box_shadow: str = ""


class OverlayManager:
    def __init__(self, session: PageSession) -> None:
        self.session = session
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._decorated: dict[int, DecorationSnapshot] = {}
        self._active_node: int | None = None
        # Connection epoch the active highlight and its node ids belong to.
        self._epoch: int | None = None
        self._generation = 0

    @property
    def state(self) -> str:
        return "highlighted" if self._active_node is not None else "idle"

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def decorated_nodes(self) -> list[int]:
        return list(self._decorated)

    async def highlight(self, options: HighlightOptions) -> HighlightResult:
        async with self._lock:
            await self._hide_locked()
            try:
                return await self._apply(options)
            except Exception:
                # Leave nothing half-applied.
                await self._hide_locked()
                raise

    async def hide(self) -> None:
        async with self._lock:
            await self._hide_locked()

    async def highlight_focused(self, options: HighlightOptions | None = None) -> HighlightResult:
        opts = options or HighlightOptions()
        node_id = await self._resolve_focused()
        opts.node_id = node_id
        opts.selector = None
        return await self.highlight(opts)

    async def dispose(self) -> None:
        await self.hide()

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    async def _apply(self, options: HighlightOptions) -> HighlightResult:
        node_id = await self._resolve_target(options)
        await self.session.enable_domain("DOM")
        await self.session.enable_domain("Overlay")
        await self.session.send_command(
            "Overlay.highlightNode",
            {"nodeId": node_id, "highlightConfig": options.highlight_config()},
        )
        self._generation += 1
        self._active_node = node_id
        self._epoch = self.session.epoch

        decorated = await self._decorate(node_id)

        duration = int(options.duration_ms)
        if duration > 0:
            self._timer = asyncio.get_running_loop().create_task(
                self._expire_after(duration / 1000.0, self._generation), name="overlay-auto-hide"
            )

        screenshot = None
        mime_type = None
        if options.return_screenshot:
            shot = await self.session.capture_screenshot(format="png")
            screenshot, mime_type = shot.data, shot.mime_type

        logger.info("overlay_highlight node=%s duration_ms=%s decorated=%s", node_id, duration, decorated)
        return HighlightResult(
            node_id=node_id,
            duration_ms=duration,
            decorated=decorated,
            screenshot=screenshot,
            mime_type=mime_type,
        )

    async def _hide_locked(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        self._generation += 1
        was_active = self._active_node is not None
        active_epoch = self._epoch
        self._active_node = None
        self._epoch = None
        snapshots = list(self._decorated.values())
        self._decorated.clear()

        # Node ids die with their connection: a snapshot from an older epoch would
        # resolve to an unrelated element, and a closed session is never reopened here.
        current = self.session.epoch if self.session.connected else None
        live = [s for s in snapshots if s.epoch == current]
        if len(live) < len(snapshots):
            logger.info("overlay_drop_stale_decorations count=%s", len(snapshots) - len(live))
        if live:
            await asyncio.gather(
                *(best_effort(f"overlay.restore node={s.node_id}", self._restore(s), log=logger) for s in live)
            )
        if (was_active and active_epoch == current) or live:
            await best_effort("Overlay.hideHighlight", self.session.send_command("Overlay.hideHighlight"), log=logger)
            await best_effort(
                "Runtime.releaseObjectGroup",
                self.session.send_command("Runtime.releaseObjectGroup", {"objectGroup": OBJECT_GROUP}),
                log=logger,
            )

    async def _expire_after(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            logger.info("overlay_auto_hide node=%s", self._active_node)
            await self._hide_locked()

    async def _resolve_target(self, options: HighlightOptions) -> int:
        if options.node_id:
            return int(options.node_id)
        if not options.selector:
            raise InvalidArgumentsError("Provide either selector or nodeId for highlighting.")
        doc = await self.session.send_command("DOM.getDocument", {"depth": 0, "pierce": True})
        root_id = (doc.get("root") or {}).get("nodeId")
        found = await self.session.send_command("DOM.querySelector", {"nodeId": root_id, "selector": options.selector})
        node_id = found.get("nodeId")
        if not node_id:
            raise NotFoundError(f'No element matches selector "{options.selector}".')
        return int(node_id)

    async def _resolve_focused(self) -> int:
        doc = await self.session.send_command("DOM.getDocument", {"depth": 0, "pierce": True})
        root_id = (doc.get("root") or {}).get("nodeId")

        res = await self.session.send_command(
            "Runtime.evaluate",
            {"expression": "document.activeElement", "objectGroup": OBJECT_GROUP},
        )
        object_id = (res.get("result") or {}).get("objectId")
        if object_id:
            requested = await best_effort(
                "DOM.requestNode",
                self.session.send_command("DOM.requestNode", {"objectId": object_id}),
                log=logger,
            )
            if requested.ok and isinstance(requested.value, dict) and requested.value.get("nodeId"):
                return int(requested.value["nodeId"])
        if root_id:
            logger.info("overlay_focus_fallback_to_document")
            return int(root_id)
        raise NotFoundError("Unable to resolve focused element.")

    async def _object_id(self, node_id: int) -> str:
        resolved = await self.session.send_command("DOM.resolveNode", {"nodeId": node_id, "objectGroup": OBJECT_GROUP})
        object_id = (resolved.get("object") or {}).get("objectId")
        if not object_id:
            raise NotFoundError(f"Node {node_id} has no page object")
        return str(object_id)

    async def _decorate(self, node_id: int) -> bool:
        async def _apply_decoration() -> bool:
            object_id = await self._object_id(node_id)
            res = await self.session.send_command(
                "Runtime.callFunctionOn",
                {
                    "objectId": object_id,
                    "functionDeclaration": _DECORATE_FN,
                    "arguments": [
                        {"value": DECORATION_OUTLINE},
                        {"value": DECORATION_OUTLINE_OFFSET},
                        {"value": DECORATION_SHADOW},
                    ],
                    "returnByValue": True,
                },
            )
            prev = (res.get("result") or {}).get("value")
            if not isinstance(prev, dict):
                return False
            self._decorated[node_id] = DecorationSnapshot(
                node_id=node_id,
                epoch=self.session.epoch,
                outline=str(prev.get("outline") or ""),
                outline_offset=str(prev.get("outlineOffset") or ""),
                box_shadow=str(prev.get("boxShadow") or ""),
            )
            return True

        result = await best_effort(f"overlay.decorate node={node_id}", _apply_decoration(), log=logger)
        return bool(result.ok and result.value)

    async def _restore(self, snapshot: DecorationSnapshot) -> None:
        object_id = await self._object_id(snapshot.node_id)
        await self.session.send_command(
            "Runtime.callFunctionOn",
            {
                "objectId": object_id,
                "functionDeclaration": _RESTORE_FN,
                "arguments": [
                    {"value": snapshot.outline},
                    {"value": snapshot.outline_offset},
                    {"value": snapshot.box_shadow},
                ],
                "returnByValue": True,
            },
        )


__all__ = [
    "DecorationSnapshot",
    "HighlightOptions",
    "HighlightResult",
    "OverlayManager",
    "rgba_from_bytes",
]
