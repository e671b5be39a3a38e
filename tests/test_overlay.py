from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fakes import FakeConnection, make_session

from mcp_servers.page_devtools import overlay as overlay_mod
from mcp_servers.page_devtools.errors import CdpConnectionError, InvalidArgumentsError, NotFoundError
from mcp_servers.page_devtools.overlay import HighlightOptions, OverlayManager, rgba_from_bytes


def _call_function_on(params: dict[str, Any]) -> dict[str, Any]:
    if params["functionDeclaration"] == overlay_mod._DECORATE_FN:
        prev = {"outline": "1px dotted blue", "outlineOffset": "", "boxShadow": ""}
        return {"result": {"type": "object", "value": prev}}
    return {"result": {"type": "boolean", "value": True}}


def _overlay(extra: dict[str, Any] | None = None) -> tuple[OverlayManager, list[FakeConnection]]:
    responses: dict[str, Any] = {
        "DOM.getDocument": {"root": {"nodeId": 1}},
        "DOM.querySelector": lambda p: {"nodeId": {"#a": 7, "#b": 9}.get(p["selector"], 0)},
        "DOM.resolveNode": lambda p: {"object": {"objectId": f"obj-{p['nodeId']}"}},
        "Runtime.callFunctionOn": _call_function_on,
        "Page.captureScreenshot": {"data": "aGk="},
    }
    responses.update(extra or {})
    session, conns = make_session(responses)
    return OverlayManager(session), conns


def _style_calls(conn: FakeConnection) -> list[tuple[str, str]]:
    out = []
    for method, params in conn.calls:
        if method == "Runtime.callFunctionOn":
            kind = "decorate" if params["functionDeclaration"] == overlay_mod._DECORATE_FN else "restore"
            out.append((kind, params["objectId"]))
    return out


def test_hide_without_highlight_is_a_no_op() -> None:
    overlay, conns = _overlay()

    async def run() -> None:
        await overlay.hide()
        await overlay.hide()

    asyncio.run(run())

    assert overlay.state == "idle"
    assert not overlay.timer_pending
    assert overlay.decorated_nodes == []
    assert conns == []


def test_highlight_applies_overlay_decoration_timer_and_screenshot() -> None:
    overlay, conns = _overlay()

    async def run():
        result = await overlay.highlight(HighlightOptions(selector="#a"))
        assert overlay.timer_pending
        return result

    result = asyncio.run(run())

    assert result.node_id == 7
    assert result.decorated is True
    assert result.screenshot == "aGk="
    assert result.mime_type == "image/png"
    assert overlay.state == "highlighted"
    assert overlay.decorated_nodes == [7]

    conn = conns[0]
    params = [p for m, p in conn.calls if m == "Overlay.highlightNode"][0]
    assert params["nodeId"] == 7
    config = params["highlightConfig"]
    assert config["borderColor"] == {"r": 255, "g": 0, "b": 0, "a": 0.8}
    assert config["contentColor"] == {"r": 255, "g": 0, "b": 0, "a": 0.15}
    assert config["showInfo"] is True
    assert "marginColor" not in config
    assert conn.methods().index("DOM.enable") < conn.methods().index("Overlay.highlightNode")


def test_two_highlights_restore_first_before_applying_second() -> None:
    overlay, conns = _overlay()

    async def run() -> None:
        await overlay.highlight(HighlightOptions(selector="#a", return_screenshot=False))
        first_timer = overlay._timer
        await overlay.highlight(HighlightOptions(selector="#b", return_screenshot=False))
        await asyncio.sleep(0)
        assert first_timer is not None and first_timer.done()
        assert overlay.timer_pending

    asyncio.run(run())

    assert _style_calls(conns[0]) == [("decorate", "obj-7"), ("restore", "obj-7"), ("decorate", "obj-9")]
    restore = [p for m, p in conns[0].calls if m == "Runtime.callFunctionOn"][1]
    assert restore["arguments"][0] == {"value": "1px dotted blue"}
    assert overlay.decorated_nodes == [9]


def test_timer_expiry_hides_and_restores() -> None:
    overlay, conns = _overlay()

    async def run() -> None:
        await overlay.highlight(HighlightOptions(selector="#a", duration_ms=20, return_screenshot=False))
        await asyncio.sleep(0.15)

    asyncio.run(run())

    assert overlay.state == "idle"
    assert not overlay.timer_pending
    assert overlay.decorated_nodes == []
    assert conns[0].methods().count("Overlay.hideHighlight") == 1
    assert _style_calls(conns[0])[-1] == ("restore", "obj-7")


def test_hide_cancels_pending_timer() -> None:
    overlay, conns = _overlay()

    async def run() -> None:
        await overlay.highlight(HighlightOptions(selector="#a", duration_ms=50, return_screenshot=False))
        await overlay.hide()
        await overlay.hide()
        await asyncio.sleep(0.12)

    asyncio.run(run())

    assert conns[0].methods().count("Overlay.hideHighlight") == 1
    assert not overlay.timer_pending


def test_zero_duration_arms_no_timer() -> None:
    overlay, _ = _overlay()

    async def run() -> None:
        await overlay.highlight(HighlightOptions(node_id=5, duration_ms=0, return_screenshot=False))
        assert not overlay.timer_pending
        assert overlay.state == "highlighted"

    asyncio.run(run())


def test_failed_highlight_leaves_nothing_behind() -> None:
    overlay, conns = _overlay({"Page.captureScreenshot": CdpConnectionError("Unable to capture screenshot")})

    async def run() -> None:
        with pytest.raises(CdpConnectionError):
            await overlay.highlight(HighlightOptions(selector="#a"))

    asyncio.run(run())

    assert overlay.state == "idle"
    assert not overlay.timer_pending
    assert overlay.decorated_nodes == []
    assert _style_calls(conns[0]) == [("decorate", "obj-7"), ("restore", "obj-7")]
    assert "Overlay.hideHighlight" in conns[0].methods()


def test_selector_without_match_is_not_found() -> None:
    overlay, _ = _overlay()

    with pytest.raises(NotFoundError, match='"#missing"'):
        asyncio.run(overlay.highlight(HighlightOptions(selector="#missing")))
    assert overlay.state == "idle"


def test_highlight_needs_selector_or_node() -> None:
    overlay, _ = _overlay()

    with pytest.raises(InvalidArgumentsError):
        asyncio.run(overlay.highlight(HighlightOptions()))


def test_decoration_failure_is_swallowed() -> None:
    overlay, conns = _overlay({"DOM.resolveNode": CdpConnectionError("No node with given id found")})

    result = asyncio.run(overlay.highlight(HighlightOptions(node_id=3, return_screenshot=False)))

    assert result.decorated is False
    assert overlay.decorated_nodes == []
    assert "Overlay.highlightNode" in conns[0].methods()


def test_highlight_focused_resolves_active_element() -> None:
    overlay, conns = _overlay(
        {
            "Runtime.evaluate": {"result": {"type": "object", "subtype": "node", "objectId": "focus-1"}},
            "DOM.requestNode": {"nodeId": 42},
        }
    )

    result = asyncio.run(overlay.highlight_focused(HighlightOptions(return_screenshot=False)))

    assert result.node_id == 42
    assert ("DOM.requestNode", {"objectId": "focus-1"}) in conns[0].calls


def test_highlight_focused_falls_back_to_document_root() -> None:
    overlay, _ = _overlay(
        {
            "Runtime.evaluate": {"result": {"type": "object", "objectId": "focus-1"}},
            "DOM.requestNode": CdpConnectionError("Could not resolve node"),
        }
    )

    result = asyncio.run(overlay.highlight_focused(HighlightOptions(return_screenshot=False)))

    assert result.node_id == 1


def test_highlight_focused_without_any_node_is_not_found() -> None:
    overlay, _ = _overlay(
        {
            "DOM.getDocument": {"root": {}},
            "Runtime.evaluate": {"result": {"type": "object", "subtype": "null", "value": None}},
        }
    )

    with pytest.raises(NotFoundError, match="focused element"):
        asyncio.run(overlay.highlight_focused())


def test_custom_colors_and_box_model_flags() -> None:
    overlay, conns = _overlay()
    options = HighlightOptions(
        node_id=4,
        color=rgba_from_bytes([0, 255, 0, 255]),
        border_color=rgba_from_bytes([0, 0, 255, 0]),
        include_margin=True,
        include_padding=True,
        return_screenshot=False,
    )

    asyncio.run(overlay.highlight(options))

    config = [p for m, p in conns[0].calls if m == "Overlay.highlightNode"][0]["highlightConfig"]
    assert config["contentColor"] == {"r": 0, "g": 255, "b": 0, "a": 1.0}
    assert config["borderColor"] == {"r": 0, "g": 0, "b": 255, "a": 0.0}
    assert "marginColor" in config
    assert "paddingColor" in config
    assert rgba_from_bytes([1, 2, 3]) is None


def test_decorations_from_a_previous_connection_are_never_restored() -> None:
    overlay, conns = _overlay(
        {
            "Runtime.evaluate": {"result": {"type": "object", "objectId": "focus-1"}},
            "DOM.requestNode": {"nodeId": 7},
        }
    )

    async def run() -> None:
        await overlay.highlight(HighlightOptions(selector="#a", return_screenshot=False))
        conns[0].drop()
        await overlay.session.connect()
        await overlay.highlight_focused(HighlightOptions(return_screenshot=False))

    asyncio.run(run())

    # Node 7 on the new connection is a different element: decorate it, never restore old styles onto it.
    assert _style_calls(conns[1]) == [("decorate", "obj-7")]
    assert "Overlay.hideHighlight" not in conns[1].methods()
    assert "Overlay.hideHighlight" not in conns[0].methods()
    assert overlay.decorated_nodes == [7]
    assert overlay.state == "highlighted"


def test_hide_after_reconnect_drops_stale_state_without_round_trips() -> None:
    overlay, conns = _overlay()

    async def run() -> None:
        await overlay.highlight(HighlightOptions(selector="#a", return_screenshot=False))
        conns[0].drop()
        await overlay.session.connect()
        await overlay.hide()

    asyncio.run(run())

    assert overlay.state == "idle"
    assert overlay.decorated_nodes == []
    assert not overlay.timer_pending
    methods = conns[1].methods()
    assert "Runtime.callFunctionOn" not in methods
    assert "Overlay.hideHighlight" not in methods
    assert "Runtime.releaseObjectGroup" not in methods
