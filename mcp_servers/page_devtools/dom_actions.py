"""Selector-driven page actions: click, set text, outer HTML, event listeners, text input.

Click and typing run as page scripts (programmatic ``el.click()`` and value
assignment plus ``input``/``change`` events) so they work without layout
coordinates. Each script returns ``{status: "ok" | "not_found" | "error"}``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .best_effort import best_effort
from .errors import EvaluationError, InvalidArgumentsError, NotFoundError
from .page_session import format_exception_details

if TYPE_CHECKING:
    from .page_session import PageSession

logger = logging.getLogger("mcp.page_devtools.dom")

LISTENER_OBJECT_GROUP = "event-listeners"
LISTENER_TARGETS = ("selector", "document", "window")

_CLICK_JS = """(() => {
  try {
    const data = __PAYLOAD__;
    const el = document.querySelectorAll(data.selector)[data.index] || null;
    if (!el) return {status: 'not_found'};
    try {
      if (typeof el.scrollIntoView === 'function') el.scrollIntoView({block: 'center', inline: 'center'});
    } catch (e) {}
    if (typeof el.click === 'function') {
      el.click();
    } else {
      el.dispatchEvent(new MouseEvent('click', {bubbles: true, cancelable: true}));
    }
    return {status: 'ok'};
  } catch (error) {
    return {status: 'error', message: error && error.message ? error.message : String(error)};
  }
})()"""

_TYPE_JS = """(() => {
  try {
    const data = __PAYLOAD__;
    const el = document.querySelectorAll(data.selector)[data.index] || null;
    if (!el) return {status: 'not_found'};
    const fire = (type) => el.dispatchEvent(new Event(type, {bubbles: true}));
    if ('value' in el) {
      try { if (typeof el.focus === 'function') el.focus(); } catch (e) {}
      const current = typeof el.value === 'string' ? el.value : '';
      el.value = data.replace ? data.text : current + data.text;
      fire('input');
      fire('change');
      if (data.submit && el.form) {
        try {
          if (typeof el.form.requestSubmit === 'function') el.form.requestSubmit();
          else if (typeof el.form.submit === 'function') el.form.submit();
        } catch (e) {}
      }
      return {status: 'ok'};
    }
    const text = typeof el.textContent === 'string' ? el.textContent : '';
    el.textContent = data.replace ? data.text : text + data.text;
    fire('input');
    return {status: 'ok'};
  } catch (error) {
    return {status: 'error', message: error && error.message ? error.message : String(error)};
  }
})()"""


@dataclass(slots=True, frozen=True)
class EventListenerInfo:
    type: str
    use_capture: bool = False
    passive: bool = False
    once: bool = False
    handler: str = "anonymous function"
    script_id: str | None = None
    line_number: int = 0
    column_number: int = 0

    @classmethod
    def from_cdp(cls, raw: dict[str, Any]) -> EventListenerInfo:
        handler = raw.get("handler") if isinstance(raw.get("handler"), dict) else {}
        return cls(
            type=str(raw.get("type") or ""),
            use_capture=bool(raw.get("useCapture")),
            passive=bool(raw.get("passive")),
            once=bool(raw.get("once")),
            handler=str(handler.get("className") or handler.get("description") or "anonymous function"),
            script_id=str(raw["scriptId"]) if raw.get("scriptId") else None,
            line_number=int(raw.get("lineNumber") or 0),
            column_number=int(raw.get("columnNumber") or 0),
        )

    def describe(self, position: int) -> str:
        flags = ["capture" if self.use_capture else "bubble"]
        if self.passive:
            flags.append("passive")
        if self.once:
            flags.append("once")
        if self.script_id:
            location = f"script {self.script_id}:{self.line_number + 1}:{self.column_number + 1}"
        else:
            location = "script location unavailable"
        return "\n".join(
            [
                f"#{position} {self.type} ({', '.join(flags)})",
                f"handler: {self.handler}",
                f"location: {location}",
            ]
        )


class DomActions:
    def __init__(self, session: PageSession) -> None:
        self.session = session

    async def click(self, selector: str, *, index: int = 0) -> None:
        status = await self._run_action(_CLICK_JS, {"selector": selector, "index": index})
        if status == "not_found":
            raise NotFoundError(f"Element not found for selector {selector} at index {index}.")

    async def type_text(
        self,
        selector: str,
        text: str,
        *,
        index: int = 0,
        replace: bool = True,
        submit: bool = False,
    ) -> None:
        payload = {"selector": selector, "text": text, "index": index, "replace": replace, "submit": submit}
        status = await self._run_action(_TYPE_JS, payload)
        if status == "not_found":
            raise NotFoundError(f"Element not found or not editable for selector {selector} at index {index}.")

    async def outer_html(self, selector: str) -> str:
        node_id = await self._query_selector(selector)
        res = await self.session.send_command("DOM.getOuterHTML", {"nodeId": node_id})
        return str(res.get("outerHTML") or "")

    async def insert_text(self, text: str) -> None:
        """Type into whatever has focus, as one IME-style insertion."""
        await self.session.send_command("Input.insertText", {"text": text})

    async def list_event_listeners(
        self,
        target: str = "selector",
        selector: str | None = None,
        *,
        depth: int = 0,
        event_types: list[str] | None = None,
    ) -> list[EventListenerInfo]:
        if target not in LISTENER_TARGETS:
            raise InvalidArgumentsError(f"target must be one of: {', '.join(LISTENER_TARGETS)}")
        try:
            object_id = await self._listener_target(target, selector)
            res = await self.session.send_command(
                "DOMDebugger.getEventListeners", {"objectId": object_id, "depth": int(depth)}
            )
        finally:
            await best_effort(
                "Runtime.releaseObjectGroup",
                self.session.send_command("Runtime.releaseObjectGroup", {"objectGroup": LISTENER_OBJECT_GROUP}),
                log=logger,
            )
        raw = res.get("listeners") if isinstance(res.get("listeners"), list) else []
        listeners = [EventListenerInfo.from_cdp(r) for r in raw if isinstance(r, dict)]
        if event_types:
            wanted = set(event_types)
            listeners = [item for item in listeners if item.type in wanted]
        return listeners

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    async def _run_action(self, script: str, payload: dict[str, Any]) -> str:
        expression = script.replace("__PAYLOAD__", json.dumps(payload))
        res = await self.session.send_command(
            "Runtime.evaluate",
            {"expression": expression, "awaitPromise": True, "returnByValue": True, "userGesture": True},
        )
        details = res.get("exceptionDetails")
        if details:
            raise EvaluationError(format_exception_details(details) or "Action script threw")
        value = (res.get("result") or {}).get("value")
        status = value.get("status") if isinstance(value, dict) else None
        if status == "error":
            raise EvaluationError(str(value.get("message") or "Unknown error during page action."))
        if status not in ("ok", "not_found"):
            raise EvaluationError("Unexpected evaluation result.")
        return status

    async def _query_selector(self, selector: str) -> int:
        doc = await self.session.send_command("DOM.getDocument", {"depth": 0, "pierce": True})
        root_id = (doc.get("root") or {}).get("nodeId")
        found = await self.session.send_command("DOM.querySelector", {"nodeId": root_id, "selector": selector})
        node_id = found.get("nodeId")
        if not node_id:
            raise NotFoundError(f'No element matches selector "{selector}".')
        return int(node_id)

    async def _listener_target(self, target: str, selector: str | None) -> str:
        if target in ("window", "document"):
            res = await self.session.send_command(
                "Runtime.evaluate", {"expression": target, "objectGroup": LISTENER_OBJECT_GROUP}
            )
            object_id = (res.get("result") or {}).get("objectId")
        else:
            if not selector:
                raise InvalidArgumentsError('selector is required when target is "selector".')
            node_id = await self._query_selector(selector)
            resolved = await self.session.send_command(
                "DOM.resolveNode", {"nodeId": node_id, "objectGroup": LISTENER_OBJECT_GROUP}
            )
            object_id = (resolved.get("object") or {}).get("objectId")
        if not object_id:
            raise NotFoundError("Unable to resolve object for event listener inspection.")
        return str(object_id)


__all__ = ["DomActions", "EventListenerInfo", "LISTENER_TARGETS"]
