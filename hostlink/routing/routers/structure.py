"""
Structure route
"""

import logging

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import unwrap

logger = logging.getLogger(__name__)


def create_structure_router(services: HostServices) -> Router:
    router = Router("structureRouter")

    @router.route(Operation.GET_STRUCTURE)
    @replies_to("structure-data", folders=[], collections=[])
    async def get_structure(payload, context):
        logger.info("Received structure request")
        layout = unwrap(await services.documents.structure())
        context.reply(
            "structure-data",
            folders=layout.get("folders", []),
            collections=layout.get("collections", [])
        )

    return router
