#!/usr/bin/env python3

"""
In-Memory Encounter Tracker

Encounters hold an ordered list of combatants and a (round, turn) position.
A started encounter begins at round 1, turn 0. Turn order follows
initiative, highest first; combatants without initiative go last in the
order they were added.

Navigation:
- nextTurn past the last combatant wraps to turn 0 of the next round
- previousTurn from turn 0 steps back to the last turn of the previous round
- previousRound and previousTurn never go below round 1, turn 0
"""

import logging
import uuid as uuid_lib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.functional import Result, Success, Failure
from .base import Document, DocumentStore, EncounterTracker, RosterChange

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid_lib.uuid4().hex[:16]


@dataclass
class Combatant:
    name: str
    actor_uuid: Optional[str]
    token_uuid: Optional[str] = None
    img: Optional[str] = None
    initiative: Optional[float] = None
    hidden: bool = False
    defeated: bool = False
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_document(cls, document: Document) -> Optional["Combatant"]:
        """Combatant for a Token or Actor document; None for anything else"""
        if document["documentType"] == "Token":
            return cls(
                name=document.get("name", ""),
                actor_uuid=document.get("actorUuid"),
                token_uuid=document["uuid"],
                img=document.get("img"),
                initiative=document.get("initiative"),
                hidden=bool(document.get("hidden", False))
            )
        if document["documentType"] == "Actor":
            return cls(
                name=document.get("name", ""),
                actor_uuid=document["uuid"],
                img=document.get("img"),
                initiative=document.get("initiative")
            )
        return None

    def represents(self, uuid: str) -> bool:
        return uuid in (self.token_uuid, self.actor_uuid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "tokenUuid": self.token_uuid,
            "actorUuid": self.actor_uuid,
            "img": self.img,
            "initiative": self.initiative,
            "hidden": self.hidden,
            "defeated": self.defeated
        }


@dataclass
class Encounter:
    name: str
    round: int = 1
    turn: int = 0
    combatants: List[Combatant] = field(default_factory=list)
    id: str = field(default_factory=_new_id)

    @property
    def combatant(self) -> Optional[Combatant]:
        """Whose turn it is"""
        if 0 <= self.turn < len(self.combatants):
            return self.combatants[self.turn]
        return None

    def sort(self) -> None:
        current = self.combatant
        # equal initiatives keep insertion order
        self.combatants.sort(key=lambda c: (c.initiative is None, -(c.initiative or 0)))
        if current is not None:
            self.turn = self.combatants.index(current)

    def next_turn(self) -> None:
        if self.turn + 1 >= len(self.combatants):
            self.next_round()
        else:
            self.turn += 1

    def next_round(self) -> None:
        self.round += 1
        self.turn = 0

    def previous_turn(self) -> None:
        if self.turn > 0:
            self.turn -= 1
        elif self.round > 1:
            self.round -= 1
            self.turn = max(len(self.combatants) - 1, 0)

    def previous_round(self) -> None:
        if self.round > 1:
            self.round -= 1
        self.turn = 0

    def remove_combatants(self, removed: List[Combatant]) -> None:
        current = self.combatant
        self.combatants = [c for c in self.combatants if c not in removed]
        if current is not None and current in self.combatants:
            self.turn = self.combatants.index(current)
        else:
            self.turn = min(self.turn, max(len(self.combatants) - 1, 0))

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "round": self.round, "turn": self.turn}

    def to_dict(self, current: bool = False) -> Dict[str, Any]:
        return {
            **self.summary(),
            "current": current,
            "combatants": [c.to_dict() for c in self.combatants]
        }


class InMemoryEncounterTracker(EncounterTracker):
    """Encounters over the Token and Actor documents of a DocumentStore"""

    def __init__(self, store: DocumentStore):
        self._store = store
        self._encounters: Dict[str, Encounter] = {}
        self._current: Optional[str] = None

    def _find(self, encounter_id: Optional[str]) -> Result[Encounter, str]:
        if encounter_id:
            encounter = self._encounters.get(encounter_id)
            if encounter is None:
                return Failure(f"Encounter with ID {encounter_id} not found")
            return Success(encounter)

        if self._current is None:
            return Failure("No active encounter")
        return Success(self._encounters[self._current])

    def _navigation_result(self, encounter: Encounter, action: str) -> Document:
        combatant = encounter.combatant
        return {
            "encounterId": encounter.id,
            "action": action,
            "currentTurn": encounter.turn,
            "currentRound": encounter.round,
            "actorTurn": combatant.actor_uuid if combatant else None,
            "tokenTurn": combatant.token_uuid if combatant else None,
            "encounter": encounter.summary()
        }

    async def _combatant_for(self, uuid: str) -> Result[Combatant, str]:
        found = await self._store.get(uuid)
        if found.is_failure():
            return found
        if found.value is None:
            return Failure("Entity not found")

        combatant = Combatant.from_document(found.value)
        if combatant is None:
            return Failure("Entity must be a Token or Actor")
        return Success(combatant)

    async def encounters(self) -> Result[List[Document], str]:
        return Success([
            encounter.to_dict(current=encounter.id == self._current)
            for encounter in self._encounters.values()
        ])

    async def start(self, name: str, uuids: List[str]) -> Result[Document, str]:
        encounter = Encounter(name=name)
        for uuid in dict.fromkeys(uuids):
            combatant = await self._combatant_for(uuid)
            if combatant.is_failure():
                logger.warning(f"Skipping {uuid} for new encounter: {combatant.error}")
                continue
            encounter.combatants.append(combatant.value)
        encounter.sort()
        encounter.turn = 0

        self._encounters[encounter.id] = encounter
        self._current = encounter.id
        logger.info(f"Started encounter {encounter.name!r} with {len(encounter.combatants)} combatants")
        return Success(encounter.to_dict(current=True))

    async def navigate(self, encounter_id: Optional[str], action: str) -> Result[Document, str]:
        steps = {
            "nextTurn": Encounter.next_turn,
            "nextRound": Encounter.next_round,
            "previousTurn": Encounter.previous_turn,
            "previousRound": Encounter.previous_round
        }
        if action not in steps:
            return Failure(f"Unknown encounter action: {action}")

        found = self._find(encounter_id)
        if found.is_failure():
            return found

        encounter = found.value
        steps[action](encounter)
        logger.debug(f"Encounter {encounter.id} {action}: round {encounter.round}, turn {encounter.turn}")
        return Success(self._navigation_result(encounter, action))

    async def end(self, encounter_id: Optional[str]) -> Result[str, str]:
        found = self._find(encounter_id)
        if found.is_failure():
            return found

        ended = self._encounters.pop(found.value.id)
        if self._current == ended.id:
            # the most recently started remaining encounter becomes current
            self._current = next(reversed(self._encounters), None)
        logger.info(f"Ended encounter {ended.name!r}")
        return Success(ended.id)

    async def add(self, encounter_id: Optional[str], uuids: List[str]) -> Result[RosterChange, str]:
        found = self._find(encounter_id)
        if found.is_failure():
            return found

        encounter = found.value
        change = RosterChange(encounter_id=encounter.id, changed=[], failed=[])
        for uuid in uuids:
            if any(c.represents(uuid) for c in encounter.combatants):
                change.failed.append({"uuid": uuid, "reason": "Already in this encounter"})
                continue

            combatant = await self._combatant_for(uuid)
            if combatant.is_failure():
                change.failed.append({"uuid": uuid, "reason": combatant.error})
                continue

            encounter.combatants.append(combatant.value)
            change.changed.append(uuid)

        encounter.sort()
        return Success(change)

    async def remove(self, encounter_id: Optional[str], uuids: List[str]) -> Result[RosterChange, str]:
        found = self._find(encounter_id)
        if found.is_failure():
            return found

        encounter = found.value
        change = RosterChange(encounter_id=encounter.id, changed=[], failed=[])
        removed: List[Combatant] = []
        for uuid in uuids:
            matching = [c for c in encounter.combatants if c.represents(uuid)]
            if matching:
                removed.extend(matching)
                change.changed.append(uuid)
                continue

            exists = await self._store.get(uuid)
            known = exists.is_success() and exists.value is not None
            reason = "No combatant found for this entity" if known else "Entity not found"
            change.failed.append({"uuid": uuid, "reason": reason})

        encounter.remove_combatants(removed)
        return Success(change)
