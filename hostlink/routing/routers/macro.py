#!/usr/bin/env python3

"""
Macro Routes

List the host's macros and run one by uuid.
"""

import logging

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import provided, unwrap

logger = logging.getLogger(__name__)


def create_macro_router(services: HostServices) -> Router:
    router = Router("macroRouter")

    @router.route(Operation.GET_MACROS)
    @replies_to("macros-list", macros=[])
    async def get_macros(payload, context):
        logger.info("Received request for macros")
        macros = unwrap(await provided(services.macros, "Macros").macros())
        context.reply("macros-list", macros=macros)

    @router.route(Operation.EXECUTE_MACRO)
    @replies_to("macro-execution-result", success=False)
    async def execute_macro(payload, context):
        uuid = payload.get("uuid")
        logger.info(f"Received request to execute macro: {uuid}")
        if not uuid:
            raise ValueError("Macro UUID is required")

        args = payload.get("args")
        if args is not None and not isinstance(args, dict):
            raise ValueError("Macro args must be an object")

        result = unwrap(await provided(services.macros, "Macros").execute(uuid, args))
        context.reply(
            "macro-execution-result",
            uuid=uuid,
            success=True,
            result=result if isinstance(result, dict) else {"value": result}
        )

    return router
