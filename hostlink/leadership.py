#!/usr/bin/env python3

"""
Leader Guard

Several processes of the same host session may be eligible to hold the relay
connection (for example every online user with elevated privileges). Only
one of them may connect, otherwise the relay would see duplicate connections
and every operation would run twice.

The election is a pure function of the candidate set: among candidates that
are both eligible and active, the lowest identifier wins. Every process runs
the same election over the same membership and therefore agrees on the
winner without talking to the others. The guard re-runs it on every
membership change and connects or disconnects the local manager to match.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Protocol

from shared.events import EventBus, LeadershipChangedEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    identifier: str
    eligible: bool = True
    active: bool = True

    @property
    def qualifies(self) -> bool:
        return self.eligible and self.active


def elect_leader(candidates: Iterable[Candidate]) -> Optional[str]:
    """Identifier of the winning candidate, or None when nobody qualifies"""
    qualified = [c.identifier for c in candidates if c.qualifies]
    return min(qualified) if qualified else None


class Connectable(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...


class LeaderGuard:
    """Keeps the local connection in line with the election result"""

    def __init__(self, local_id: str, manager: Connectable, event_bus: Optional[EventBus] = None):
        self.local_id = local_id
        self._manager = manager
        self._event_bus = event_bus
        self._candidates: Dict[str, Candidate] = {}
        self._leader: Optional[str] = None
        self._holding = False

    @property
    def leader(self) -> Optional[str]:
        return self._leader

    @property
    def is_leader(self) -> bool:
        return self._leader == self.local_id

    @property
    def holding_connection(self) -> bool:
        return self._holding

    @property
    def candidates(self) -> Dict[str, Candidate]:
        return dict(self._candidates)

    async def update(self, candidates: Iterable[Candidate]) -> Optional[str]:
        """Replace the whole membership and re-run the election"""
        self._candidates = {c.identifier: c for c in candidates}
        return await self.elect()

    async def join(self, candidate: Candidate) -> Optional[str]:
        self._candidates[candidate.identifier] = candidate
        return await self.elect()

    async def leave(self, identifier: str) -> Optional[str]:
        self._candidates.pop(identifier, None)
        return await self.elect()

    async def set_active(self, identifier: str, active: bool) -> Optional[str]:
        candidate = self._candidates.get(identifier)
        if candidate is None:
            logger.warning(f"Unknown candidate {identifier}; ignoring activity change")
            return self._leader
        self._candidates[identifier] = replace(candidate, active=active)
        return await self.elect()

    async def elect(self) -> Optional[str]:
        leader = elect_leader(self._candidates.values())

        if leader != self._leader:
            logger.info(f"Leader changed: {self._leader} -> {leader}")
            self._leader = leader
            if self._event_bus is not None:
                self._event_bus.publish_nowait(LeadershipChangedEvent(
                    leader_id=leader,
                    is_leader=self.is_leader,
                    source="leader_guard"
                ))

        if self.is_leader and not self._holding:
            logger.info(f"{self.local_id} is the primary initiator; connecting")
            self._holding = True
            await self._manager.connect()
        elif not self.is_leader and self._holding:
            logger.info(f"{self.local_id} is no longer the primary initiator; disconnecting")
            self._holding = False
            await self._manager.disconnect()
        elif not self.is_leader:
            logger.debug(f"{self.local_id} is not the primary initiator (leader: {leader})")

        return leader

    async def release(self) -> None:
        """Drop the connection regardless of the election (shutdown)"""
        if self._holding:
            self._holding = False
            await self._manager.disconnect()
