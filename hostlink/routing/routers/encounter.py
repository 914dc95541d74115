#!/usr/bin/env python3

"""
Encounter Routes

Start, step through, edit and end combat encounters. Requests without an
encounterId act on the host's current encounter.
"""

import logging
from typing import List

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import provided, unwrap

logger = logging.getLogger(__name__)

DEFAULT_ENCOUNTER_NAME = "New Encounter"

NAVIGATION_ROUTES = (
    (Operation.ENCOUNTER_NEXT_TURN, "nextTurn"),
    (Operation.ENCOUNTER_NEXT_ROUND, "nextRound"),
    (Operation.ENCOUNTER_PREVIOUS_TURN, "previousTurn"),
    (Operation.ENCOUNTER_PREVIOUS_ROUND, "previousRound"),
)


def _uuid_list(payload: dict, key: str) -> List[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list of uuids")
    return [str(uuid) for uuid in value]


def create_encounter_router(services: HostServices) -> Router:
    router = Router("encounterRouter")
    documents = services.documents

    def tracker():
        return provided(services.encounters, "Encounters")

    async def selected_uuids() -> List[str]:
        return [doc["uuid"] for doc in unwrap(await documents.selected())]

    @router.route(Operation.GET_ENCOUNTERS)
    @replies_to("encounters-list", encounters=[])
    async def get_encounters(payload, context):
        logger.info("Received request for encounters")
        context.reply("encounters-list", encounters=unwrap(await tracker().encounters()))

    @router.route(Operation.START_ENCOUNTER)
    @replies_to("encounter-started")
    async def start_encounter(payload, context):
        name = payload.get("name") or DEFAULT_ENCOUNTER_NAME
        logger.info(f"Received request to start encounter: {name}")

        uuids = _uuid_list(payload, "tokenUuids")
        if payload.get("startWithPlayers"):
            actors = unwrap(await documents.query("Actor"))
            uuids.extend(doc["uuid"] for doc in actors if doc.get("hasPlayerOwner"))
        if payload.get("startWithSelected"):
            uuids.extend(await selected_uuids())

        encounter = unwrap(await tracker().start(name, uuids))
        context.reply("encounter-started", encounterId=encounter["id"], encounter=encounter)

    def add_navigation_route(operation: Operation, action: str) -> None:
        @router.route(operation)
        @replies_to("encounter-navigation")
        async def navigate(payload, context):
            logger.info(f"Received {action} request for encounter: {payload.get('encounterId') or 'active'}")
            outcome = unwrap(await tracker().navigate(payload.get("encounterId"), action))
            context.reply("encounter-navigation", **outcome)

    for operation, action in NAVIGATION_ROUTES:
        add_navigation_route(operation, action)

    @router.route(Operation.END_ENCOUNTER)
    @replies_to("encounter-ended")
    async def end_encounter(payload, context):
        logger.info(f"Received request to end encounter: {payload.get('encounterId') or 'active'}")
        ended = unwrap(await tracker().end(payload.get("encounterId")))
        context.reply("encounter-ended", encounterId=ended, message="Encounter successfully ended")

    @router.route(Operation.ADD_TO_ENCOUNTER)
    @replies_to("add-to-encounter-result")
    async def add_to_encounter(payload, context):
        logger.info(f"Received add-to-encounter request for encounter: {payload.get('encounterId') or 'active'}")

        uuids = _uuid_list(payload, "uuids")
        if payload.get("selected") is True:
            uuids.extend(uuid for uuid in await selected_uuids() if uuid not in uuids)

        change = unwrap(await tracker().add(payload.get("encounterId"), uuids))
        context.reply(
            "add-to-encounter-result",
            encounterId=change.encounter_id,
            added=change.changed,
            failed=change.failed
        )

    @router.route(Operation.REMOVE_FROM_ENCOUNTER)
    @replies_to("remove-from-encounter-result")
    async def remove_from_encounter(payload, context):
        logger.info(f"Received remove-from-encounter request for encounter: {payload.get('encounterId') or 'active'}")

        uuids = _uuid_list(payload, "uuids")
        if payload.get("selected") is True:
            uuids.extend(uuid for uuid in await selected_uuids() if uuid not in uuids)

        change = unwrap(await tracker().remove(payload.get("encounterId"), uuids))
        context.reply(
            "remove-from-encounter-result",
            encounterId=change.encounter_id,
            removed=change.changed,
            failed=change.failed
        )

    return router
