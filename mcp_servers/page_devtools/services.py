"""Per-process wiring: one page session and the subsystems sharing it."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import PageConfig
from .console_stream import ConsoleStreamManager, Notifier
from .dom_actions import DomActions
from .network_recorder import NetworkRecorder
from .overlay import OverlayManager
from .page_session import Connector, PageSession
from .storage import StorageManager

logger = logging.getLogger("mcp.page_devtools")


@dataclass
class PageServices:
    config: PageConfig
    session: PageSession
    network: NetworkRecorder
    console: ConsoleStreamManager
    overlay: OverlayManager
    storage: StorageManager
    dom: DomActions

    @classmethod
    def create(cls, config: PageConfig, notify: Notifier, *, connector: Connector | None = None) -> PageServices:
        session = PageSession(config, connector=connector)
        return cls(
            config=config,
            session=session,
            network=NetworkRecorder(session),
            console=ConsoleStreamManager(session, notify),
            overlay=OverlayManager(session),
            storage=StorageManager(session),
            dom=DomActions(session),
        )

    async def dispose(self) -> None:
        """Stop the overlay timer, detach console listeners, then close the connection."""
        await self.overlay.dispose()
        self.console.unsubscribe()
        self.network.stop()
        await self.session.dispose()
        logger.info("page_services_disposed")


__all__ = ["PageServices"]
