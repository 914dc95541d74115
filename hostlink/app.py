#!/usr/bin/env python3

"""
Host Link Application

Wires configuration, host services, the connection manager, the feature
routers and the leader guard together. One HostLinkApp is one host process;
it is constructed explicitly and passed to whoever needs it.
"""

import logging
from typing import Iterable, List, Optional

from shared.events import EventBus

from .config import HostLinkConfig, require_token
from .connection import ConnectionManager, Connector
from .host import HostServices
from .leadership import Candidate, LeaderGuard
from .routing import Router, all_routers, register_routers

logger = logging.getLogger(__name__)


class HostLinkApp:
    """
    Host process lifecycle

    init() registers every router and runs the first election; the process
    connects only if it wins. teardown() disconnects and lets in-flight
    handlers finish within a bounded wait.
    """

    def __init__(self,
                 config: HostLinkConfig,
                 services: HostServices,
                 event_bus: Optional[EventBus] = None,
                 connector: Optional[Connector] = None,
                 routers: Optional[List[Router]] = None):
        self.config = config
        self.services = services
        self.event_bus = event_bus or EventBus()
        self._connector = connector
        self._routers = routers
        self.manager: Optional[ConnectionManager] = None
        self.guard: Optional[LeaderGuard] = None
        self._initialized = False

    @property
    def local_id(self) -> str:
        return self.config.caller_id

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self, candidates: Optional[Iterable[Candidate]] = None) -> None:
        """
        Start the host link

        candidates is the current membership of eligible processes; when
        omitted this process is the only candidate.
        """
        if self._initialized:
            logger.warning("Host link already initialized")
            return

        token = require_token(self.config)
        if token.is_failure():
            logger.warning(token.error)

        await self.event_bus.start()

        self.manager = ConnectionManager(
            relay_url=self.config.relay_url,
            token=self.config.token,
            client_id=self.config.client_id,
            keepalive_interval=self.config.keepalive_interval,
            backoff=self.config.backoff_policy(),
            open_timeout=self.config.open_timeout,
            connector=self._connector,
            event_bus=self.event_bus
        )

        routers = self._routers if self._routers is not None else all_routers(self.services)
        register_routers(self.manager, routers)
        operations = sum(len(router.routes) for router in routers)
        logger.info(f"Registered {operations} operations from {len(routers)} routers")

        self.guard = LeaderGuard(self.local_id, self.manager, self.event_bus)
        self._initialized = True

        membership = list(candidates) if candidates is not None else [Candidate(self.local_id)]
        await self.guard.update(membership)

    async def teardown(self, drain_timeout: float = 5.0) -> None:
        if not self._initialized:
            return

        logger.info("Shutting down host link")
        await self.guard.release()
        await self.manager.disconnect()

        pending = await self.manager.drain(drain_timeout)
        if pending:
            logger.warning(f"{pending} handlers still running after {drain_timeout}s")

        await self.event_bus.stop()
        self._initialized = False
        logger.info("Host link shut down")

    async def apply_config(self, config: HostLinkConfig) -> None:
        """
        Switch to new settings

        A changed relay URL or token drops the connection and, if this
        process still leads, reconnects with the new values.
        """
        previous, self.config = self.config, config
        if not self._initialized:
            return

        if config.relay_url == previous.relay_url and config.token == previous.token:
            logger.debug("Relay settings unchanged; connection kept")
            return

        logger.info("Relay settings changed; re-initializing the connection")
        await self.manager.disconnect()
        self.manager.relay_url = config.relay_url
        self.manager.token = config.token

        if self.guard.is_leader:
            await self.manager.connect()
