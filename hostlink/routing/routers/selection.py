#!/usr/bin/env python3

"""
Selection Routes

Change and read the host's current selection. Targets can be named by uuid,
by exact (case-insensitive) name, or all at once.
"""

import logging

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import unwrap

logger = logging.getLogger(__name__)


def create_selection_router(services: HostServices) -> Router:
    router = Router("selectionRouter")
    documents = services.documents

    @router.route(Operation.SELECT_ENTITIES)
    @replies_to("select-entities-result", success=False)
    async def select_entities(payload, context):
        logger.info("Received select entities request")

        targets = []
        if payload.get("all"):
            targets.extend(doc["uuid"] for doc in unwrap(await documents.query()))

        uuids = payload.get("uuids")
        if isinstance(uuids, list):
            targets.extend(str(uuid) for uuid in uuids)

        name = payload.get("name")
        if name:
            wanted = str(name).lower()
            targets.extend(
                doc["uuid"] for doc in unwrap(await documents.query())
                if str(doc.get("name", "")).lower() == wanted
            )

        if not targets:
            raise ValueError("No matching entities found")

        # dict.fromkeys keeps first-seen order while dropping duplicates
        targets = list(dict.fromkeys(targets))
        selection = unwrap(await documents.select(targets, overwrite=bool(payload.get("overwrite"))))
        count = sum(1 for uuid in targets if uuid in selection)
        context.reply(
            "select-entities-result",
            success=True,
            count=count,
            message=f"{count} entities selected"
        )

    @router.route(Operation.GET_SELECTED_ENTITIES)
    @replies_to("selected-entities-result", success=False)
    async def get_selected_entities(payload, context):
        logger.info("Received get selected entities request")
        selected = unwrap(await documents.selected())
        context.reply(
            "selected-entities-result",
            success=True,
            selected=[{"uuid": doc["uuid"], "name": doc.get("name")} for doc in selected]
        )

    return router
