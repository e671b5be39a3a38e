from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from fakes import make_session

from mcp_servers.page_devtools.errors import EvaluationError, InvalidArgumentsError
from mcp_servers.page_devtools.storage import Cookie, StorageManager


def _evaluated(value: Any) -> dict[str, Any]:
    return {"result": {"type": "object", "value": value}}


def test_cookie_description_omits_session_expiry() -> None:
    session_cookie = Cookie.from_cdp(
        {"name": "sid", "value": "abc", "domain": ".example.test", "path": "/", "expires": -1, "session": True, "httpOnly": True}
    )
    persistent = Cookie.from_cdp(
        {"name": "theme", "value": "dark", "secure": True, "sameSite": "Lax", "expires": 1_700_000_000}
    )

    assert session_cookie.describe() == "sid=abc (domain=.example.test, path=/, httpOnly, session=1)"
    assert persistent.describe() == "theme=dark (secure, sameSite=Lax, expires=2023-11-14T22:13:20.000Z)"
    assert Cookie.from_cdp({"name": "bare", "value": ""}).describe() == "bare="


def test_list_cookies_scopes_by_url_when_given() -> None:
    session, conns = make_session(
        {
            "Network.getCookies": {"cookies": [{"name": "a", "value": "1"}]},
            "Network.getAllCookies": {"cookies": [{"name": "a", "value": "1"}, {"name": "b", "value": "2"}, "junk"]},
        }
    )
    storage = StorageManager(session)

    scoped = asyncio.run(storage.list_cookies("https://example.test/"))
    everything = asyncio.run(storage.list_cookies())

    assert [c.name for c in scoped] == ["a"]
    assert [c.name for c in everything] == ["a", "b"]
    assert ("Network.getCookies", {"urls": ["https://example.test/"]}) in conns[0].calls


def test_set_cookie_sends_only_given_attributes() -> None:
    session, conns = make_session({"Network.setCookie": {"success": True}})
    storage = StorageManager(session)

    asyncio.run(storage.set_cookie(url="https://example.test/", name="sid", value="abc", same_site="Strict", expires=42))

    params = [p for m, p in conns[0].calls if m == "Network.setCookie"][0]
    assert params == {
        "url": "https://example.test/",
        "name": "sid",
        "value": "abc",
        "secure": False,
        "httpOnly": False,
        "sameSite": "Strict",
        "expires": 42,
    }


def test_set_cookie_rejected_by_browser_raises() -> None:
    session, _ = make_session({"Network.setCookie": {"success": False}})
    storage = StorageManager(session)

    with pytest.raises(InvalidArgumentsError, match="Verify domain/path"):
        asyncio.run(storage.set_cookie(url="https://example.test/", name="sid"))


def test_set_cookie_validates_same_site_before_sending() -> None:
    session, conns = make_session()
    storage = StorageManager(session)

    with pytest.raises(InvalidArgumentsError, match="sameSite"):
        asyncio.run(storage.set_cookie(url="https://example.test/", name="sid", same_site="lax"))
    assert conns == []


def test_list_local_storage_keeps_null_values() -> None:
    entries = [{"key": "token", "value": "t"}, {"key": "empty", "value": None}]
    session, _ = make_session({"Runtime.evaluate": _evaluated({"status": "ok", "entries": entries})})

    assert asyncio.run(StorageManager(session).list_local_storage()) == [("token", "t"), ("empty", None)]


def test_local_storage_access_error_is_reported() -> None:
    session, _ = make_session(
        {"Runtime.evaluate": _evaluated({"status": "error", "message": "Access is denied for this document."})}
    )

    with pytest.raises(EvaluationError, match="Access is denied"):
        asyncio.run(StorageManager(session).list_local_storage())


def test_set_local_storage_item_escapes_key_and_value() -> None:
    session, conns = make_session({"Runtime.evaluate": _evaluated({"status": "ok"})})
    key = 'a"b\n'

    asyncio.run(StorageManager(session).set_local_storage_item(key, "</script>"))

    expression = [p for m, p in conns[0].calls if m == "Runtime.evaluate"][0]["expression"]
    assert f"localStorage.setItem({json.dumps(key)}, {json.dumps('</script>')})" in expression
    assert "__CALL__" not in expression


def test_thrown_storage_script_raises_evaluation_error() -> None:
    session, _ = make_session({"Runtime.evaluate": {"result": {}, "exceptionDetails": {"text": "Uncaught SecurityError"}}})

    with pytest.raises(EvaluationError, match="SecurityError"):
        asyncio.run(StorageManager(session).remove_local_storage_item("k"))
