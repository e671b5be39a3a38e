#!/usr/bin/env python3
"""Highlight the focused element of a page and save the overlay screenshot.

Usage: capture_focus_overlay.py <ws-endpoint> [output.png]
The endpoint may also come from PAGE_WS_ENDPOINT.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from mcp_servers.page_devtools.config import PageConfig, validate_endpoint  # noqa: E402
from mcp_servers.page_devtools.overlay import OverlayManager  # noqa: E402
from mcp_servers.page_devtools.page_session import PageSession  # noqa: E402

logger = logging.getLogger("mcp.page_devtools.capture")


async def capture(endpoint: str, output: Path) -> Path:
    session = PageSession(PageConfig(endpoint=validate_endpoint(endpoint)))
    overlay = OverlayManager(session)
    try:
        await session.connect()
        result = await overlay.highlight_focused()
        if result.screenshot:
            output.write_bytes(base64.b64decode(result.screenshot))
        else:
            logger.warning("no screenshot returned; writing empty file")
            output.write_bytes(b"")
        return output
    finally:
        await overlay.hide()
        await session.dispose()


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)
    endpoint = argv[0] if argv else os.environ.get("PAGE_WS_ENDPOINT")
    if not endpoint:
        print("Usage: capture_focus_overlay.py <ws-endpoint> [output-path]", file=sys.stderr)
        print("Or set PAGE_WS_ENDPOINT and omit the first argument.", file=sys.stderr)
        return 1
    output = Path(argv[1] if len(argv) > 1 else "focus-overlay.png").resolve()
    try:
        saved = asyncio.run(capture(endpoint, output))
    except Exception as exc:
        logger.error("Failed to capture focus overlay screenshot: %s", exc)
        return 1
    print(f"Saved focus overlay screenshot to {saved}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
