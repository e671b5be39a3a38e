"""
Storage tool handlers - cookies and localStorage.
"""

from __future__ import annotations

import urllib.parse
from typing import TYPE_CHECKING, Any

from ...errors import PageDevtoolsError
from ..args import to_bool, to_optional_int, to_str
from ..types import ToolResult

if TYPE_CHECKING:
    from ...services import PageServices


def _valid_url(url: str | None) -> bool:
    parsed = urllib.parse.urlparse(url or "")
    return bool(parsed.scheme and parsed.netloc)


async def handle_storage_list_cookies(services: PageServices, args: dict[str, Any]) -> ToolResult:
    url = to_str(args.get("url"))
    if url and not _valid_url(url):
        return ToolResult.error("Provide a valid URL to scope cookies.", tool="storage_list_cookies")
    try:
        cookies = await services.storage.list_cookies(url)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to list cookies: {exc}", tool="storage_list_cookies")
    if not cookies:
        return ToolResult.text("No cookies found.")
    return ToolResult.text("\n".join(c.describe() for c in cookies))


async def handle_storage_set_cookie(services: PageServices, args: dict[str, Any]) -> ToolResult:
    url = to_str(args.get("url"))
    name = to_str(args.get("name"))
    if not _valid_url(url):
        return ToolResult.error("URL used to scope the cookie is required.", tool="storage_set_cookie")
    if not name:
        return ToolResult.error("Cookie name is required.", tool="storage_set_cookie")
    value = args.get("value")
    try:
        await services.storage.set_cookie(
            url=url,
            name=name,
            value=value if isinstance(value, str) else "",
            domain=to_str(args.get("domain")),
            path=to_str(args.get("path")),
            secure=to_bool(args.get("secure"), default=False),
            http_only=to_bool(args.get("httpOnly"), default=False),
            same_site=to_str(args.get("sameSite")),
            expires=to_optional_int(args.get("expires"), min_v=0, max_v=2**53),
        )
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to set cookie: {exc}", tool="storage_set_cookie")
    return ToolResult.text(f"Set cookie {name} for {url}.")


async def handle_storage_delete_cookie(services: PageServices, args: dict[str, Any]) -> ToolResult:
    name = to_str(args.get("name"))
    if not name:
        return ToolResult.error("Cookie name is required.", tool="storage_delete_cookie")
    try:
        await services.storage.delete_cookie(
            name,
            url=to_str(args.get("url")),
            domain=to_str(args.get("domain")),
            path=to_str(args.get("path")),
        )
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to delete cookie: {exc}", tool="storage_delete_cookie")
    return ToolResult.text(f"Deleted cookie {name}.")


async def handle_storage_clear_cookies(services: PageServices, args: dict[str, Any]) -> ToolResult:
    try:
        await services.storage.clear_cookies()
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to clear cookies: {exc}", tool="storage_clear_cookies")
    return ToolResult.text("Cleared all cookies for this browser context.")


async def handle_storage_list_local_storage(services: PageServices, args: dict[str, Any]) -> ToolResult:
    try:
        entries = await services.storage.list_local_storage()
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to read localStorage: {exc}", tool="storage_list_local_storage")
    if not entries:
        return ToolResult.text("localStorage is empty.")
    return ToolResult.text("\n".join(f"{key}={'null' if value is None else value}" for key, value in entries))


async def handle_storage_set_local_storage(services: PageServices, args: dict[str, Any]) -> ToolResult:
    key = args.get("key")
    if not isinstance(key, str) or not key:
        return ToolResult.error("Key must be provided.", tool="storage_set_local_storage")
    value = args.get("value")
    try:
        await services.storage.set_local_storage_item(key, value if isinstance(value, str) else "")
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to set localStorage: {exc}", tool="storage_set_local_storage")
    return ToolResult.text(f"Set localStorage[{key}]")


async def handle_storage_remove_local_storage(services: PageServices, args: dict[str, Any]) -> ToolResult:
    key = args.get("key")
    if not isinstance(key, str) or not key:
        return ToolResult.error("Key must be provided.", tool="storage_remove_local_storage")
    try:
        await services.storage.remove_local_storage_item(key)
    except PageDevtoolsError as exc:
        return ToolResult.error(f"Failed to remove localStorage item: {exc}", tool="storage_remove_local_storage")
    return ToolResult.text(f"Removed localStorage[{key}]")


STORAGE_HANDLERS: dict[str, tuple] = {
    "storage_list_cookies": (handle_storage_list_cookies, True),
    "storage_set_cookie": (handle_storage_set_cookie, True),
    "storage_delete_cookie": (handle_storage_delete_cookie, True),
    "storage_clear_cookies": (handle_storage_clear_cookies, True),
    "storage_list_local_storage": (handle_storage_list_local_storage, True),
    "storage_set_local_storage": (handle_storage_set_local_storage, True),
    "storage_remove_local_storage": (handle_storage_remove_local_storage, True),
}
