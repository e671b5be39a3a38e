"""Cookies and localStorage of the attached page.

Cookies go through the Network domain of the page's browser context.
localStorage is reached with small page scripts that report
``{status: "ok" | "error", ...}`` instead of throwing, so a page that blocks
storage access (opaque origin, sandboxed frame) produces a readable message.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .errors import EvaluationError, InvalidArgumentsError
from .page_session import format_exception_details

if TYPE_CHECKING:
    from .page_session import PageSession

logger = logging.getLogger("mcp.page_devtools.storage")

SAME_SITE_VALUES = ("Strict", "Lax", "None")

_LIST_LOCAL_STORAGE_JS = """(() => {
  const entries = [];
  try {
    for (let i = 0; i < localStorage.length; ++i) {
      const key = localStorage.key(i);
      entries.push({key, value: localStorage.getItem(key)});
    }
  } catch (error) {
    return {status: 'error', message: error && error.message ? error.message : String(error)};
  }
  return {status: 'ok', entries};
})()"""

_MUTATE_LOCAL_STORAGE_JS = """(() => {
  try {
    __CALL__;
    return {status: 'ok'};
  } catch (error) {
    return {status: 'error', message: error && error.message ? error.message : String(error)};
  }
})()"""


@dataclass(slots=True, frozen=True)
class Cookie:
    name: str
    value: str
    domain: str | None = None
    path: str | None = None
    expires: float | None = None
    http_only: bool = False
    secure: bool = False
    same_site: str | None = None
    session: bool = False

    @classmethod
    def from_cdp(cls, raw: dict[str, Any]) -> Cookie:
        expires = raw.get("expires")
        return cls(
            name=str(raw.get("name") or ""),
            value=str(raw.get("value") or ""),
            domain=raw.get("domain") or None,
            path=raw.get("path") or None,
            expires=float(expires) if isinstance(expires, (int, float)) and not isinstance(expires, bool) else None,
            http_only=bool(raw.get("httpOnly")),
            secure=bool(raw.get("secure")),
            same_site=raw.get("sameSite") or None,
            session=bool(raw.get("session")),
        )

    def describe(self) -> str:
        attrs = []
        if self.domain:
            attrs.append(f"domain={self.domain}")
        if self.path:
            attrs.append(f"path={self.path}")
        if self.secure:
            attrs.append("secure")
        if self.http_only:
            attrs.append("httpOnly")
        if self.same_site:
            attrs.append(f"sameSite={self.same_site}")
        if self.session:
            attrs.append("session=1")
        # Session cookies report expires=-1.
        if self.expires is not None and self.expires > 0:
            stamp = datetime.fromtimestamp(self.expires, tz=timezone.utc)
            attrs.append(f"expires={stamp.isoformat(timespec='milliseconds').replace('+00:00', 'Z')}")
        suffix = f" ({', '.join(attrs)})" if attrs else ""
        return f"{self.name}={self.value}{suffix}"


class StorageManager:
    def __init__(self, session: PageSession) -> None:
        self.session = session

    # ─────────────────────────────────────────────────────────────────────────
    # Cookies
    # ─────────────────────────────────────────────────────────────────────────

    async def list_cookies(self, url: str | None = None) -> list[Cookie]:
        if url:
            res = await self.session.send_command("Network.getCookies", {"urls": [url]})
        else:
            res = await self.session.send_command("Network.getAllCookies")
        raw = res.get("cookies") if isinstance(res.get("cookies"), list) else []
        return [Cookie.from_cdp(c) for c in raw if isinstance(c, dict)]

    async def set_cookie(
        self,
        *,
        url: str,
        name: str,
        value: str = "",
        domain: str | None = None,
        path: str | None = None,
        secure: bool = False,
        http_only: bool = False,
        same_site: str | None = None,
        expires: int | None = None,
    ) -> None:
        if same_site is not None and same_site not in SAME_SITE_VALUES:
            raise InvalidArgumentsError(f"sameSite must be one of: {', '.join(SAME_SITE_VALUES)}")
        params: dict[str, Any] = {
            "url": url,
            "name": name,
            "value": value,
            "secure": bool(secure),
            "httpOnly": bool(http_only),
        }
        if domain:
            params["domain"] = domain
        if path:
            params["path"] = path
        if same_site:
            params["sameSite"] = same_site
        if expires is not None:
            params["expires"] = expires
        res = await self.session.send_command("Network.setCookie", params)
        # Newer protocol versions drop ``success``; only an explicit False is a rejection.
        if res.get("success") is False:
            raise InvalidArgumentsError("Failed to set cookie. Verify domain/path parameters.")
        logger.info("cookie_set name=%s url=%s", name, url)

    async def delete_cookie(
        self,
        name: str,
        *,
        url: str | None = None,
        domain: str | None = None,
        path: str | None = None,
    ) -> None:
        params: dict[str, Any] = {"name": name}
        if url:
            params["url"] = url
        if domain:
            params["domain"] = domain
        if path:
            params["path"] = path
        await self.session.send_command("Network.deleteCookies", params)

    async def clear_cookies(self) -> None:
        await self.session.send_command("Network.clearBrowserCookies")
        logger.info("cookies_cleared")

    # ─────────────────────────────────────────────────────────────────────────
    # localStorage
    # ─────────────────────────────────────────────────────────────────────────

    async def list_local_storage(self) -> list[tuple[str, str | None]]:
        res = await self._run_storage_script(_LIST_LOCAL_STORAGE_JS, "Failed to access localStorage.")
        entries = res.get("entries") if isinstance(res.get("entries"), list) else []
        out: list[tuple[str, str | None]] = []
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("key") is None:
                continue
            value = entry.get("value")
            out.append((str(entry["key"]), None if value is None else str(value)))
        return out

    async def set_local_storage_item(self, key: str, value: str) -> None:
        call = f"localStorage.setItem({json.dumps(key)}, {json.dumps(value)})"
        await self._run_storage_script(_MUTATE_LOCAL_STORAGE_JS.replace("__CALL__", call), "Failed to set localStorage item.")

    async def remove_local_storage_item(self, key: str) -> None:
        call = f"localStorage.removeItem({json.dumps(key)})"
        await self._run_storage_script(
            _MUTATE_LOCAL_STORAGE_JS.replace("__CALL__", call), "Failed to remove localStorage item."
        )

    async def _run_storage_script(self, expression: str, fallback: str) -> dict[str, Any]:
        res = await self.session.send_command(
            "Runtime.evaluate",
            {"expression": expression, "awaitPromise": True, "returnByValue": True, "userGesture": True},
        )
        details = res.get("exceptionDetails")
        if details:
            raise EvaluationError(format_exception_details(details) or "Runtime evaluation failed.")
        value = (res.get("result") or {}).get("value")
        if not isinstance(value, dict):
            raise EvaluationError(fallback)
        if value.get("status") == "error":
            raise EvaluationError(str(value.get("message") or fallback))
        return value


__all__ = ["Cookie", "SAME_SITE_VALUES", "StorageManager"]
