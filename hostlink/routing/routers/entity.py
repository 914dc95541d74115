#!/usr/bin/env python3

"""
Entity Routes

Read and write individual host documents. Every request is answered with
one reply of the operation's family; failures carry an ``error`` field.
"""

import logging

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import require, unwrap

logger = logging.getLogger(__name__)


def create_entity_router(services: HostServices) -> Router:
    router = Router("entityRouter")
    documents = services.documents

    @router.route(Operation.GET_ENTITY)
    @replies_to("entity-data", data=None)
    async def get_entity(payload, context):
        logger.info(f"Received entity request: uuid={payload.get('uuid')} selected={bool(payload.get('selected'))}")

        if payload.get("selected"):
            selected = unwrap(await documents.selected())
            uuid = selected[-1]["uuid"] if selected else payload.get("uuid")
            context.reply("entity-data", uuid=uuid, data=selected)
            return

        require(payload, "uuid")
        uuid = payload["uuid"]
        document = unwrap(await documents.get(uuid))
        if document is None:
            logger.error(f"Entity not found: {uuid}")
            context.reply("entity-data", uuid=uuid, error="Entity not found", data=None)
            return

        context.reply("entity-data", uuid=uuid, data=document)

    @router.route(Operation.CREATE_ENTITY)
    @replies_to("entity-created", message="Failed to create entity")
    async def create_entity(payload, context):
        logger.info(f"Received create entity request for type: {payload.get('entityType')}")
        require(payload, "entityType")

        document = unwrap(await documents.create(
            payload["entityType"],
            payload.get("data") or {},
            folder=payload.get("folder")
        ))
        context.reply("entity-created", uuid=document["uuid"], entity=document)

    @router.route(Operation.UPDATE_ENTITY)
    @replies_to("entity-updated", message="Failed to update entity")
    async def update_entity(payload, context):
        logger.info(f"Received update entity request: {payload.get('uuid')}")
        require(payload, "uuid")

        changes = payload.get("updateData") or payload.get("data")
        if not isinstance(changes, dict) or not changes:
            raise ValueError("Update data must be a non-empty object")

        document = unwrap(await documents.update(payload["uuid"], changes))
        context.reply("entity-updated", uuid=document["uuid"], entity=document)

    @router.route(Operation.DELETE_ENTITY)
    @replies_to("entity-deleted", success=False)
    async def delete_entity(payload, context):
        logger.info(f"Received delete entity request: {payload.get('uuid')}")
        require(payload, "uuid")

        unwrap(await documents.delete(payload["uuid"]))
        context.reply("entity-deleted", uuid=payload["uuid"], success=True)

    return router
