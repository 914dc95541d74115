"""
Keepalive routes

The relay may ping the host as well as answer the host's pings.
"""

import logging

from ..router import Operation, Router

logger = logging.getLogger(__name__)


def create_ping_pong_router() -> Router:
    router = Router("pingRouter")

    @router.route(Operation.PING)
    def handle_ping(payload, context):
        logger.debug("Received ping, sending pong")
        context.reply("pong")

    @router.route(Operation.PONG)
    def handle_pong(payload, context):
        logger.debug("Received pong")

    return router
