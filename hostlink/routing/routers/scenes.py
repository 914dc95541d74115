#!/usr/bin/env python3

"""
Scene Routes

List, look up and activate scenes. The scene list travels under the
``scene`` key like the single-scene replies do.
"""

import logging

from ...host import HostServices
from ..router import Operation, Router, replies_to
from ._common import provided, require, unwrap

logger = logging.getLogger(__name__)


def create_scenes_router(services: HostServices) -> Router:
    router = Router("scenesRouter")

    def scenes():
        return provided(services.scenes, "Scenes")

    @router.route(Operation.GET_SCENES)
    @replies_to("get-scenes-result", scene=[])
    async def get_scenes(payload, context):
        logger.info("Received request for scenes")
        context.reply("get-scenes-result", scene=unwrap(await scenes().scenes()))

    @router.route(Operation.GET_SCENE)
    @replies_to("get-scene-result", scene=None)
    async def get_scene(payload, context):
        require(payload, "id")
        scene = unwrap(await scenes().get(payload["id"]))
        if scene is None:
            raise ValueError(f"Scene with id {payload['id']} not found")
        context.reply("get-scene-result", scene=scene)

    @router.route(Operation.ACTIVATE_SCENE)
    @replies_to("activate-scene-result", scene=None)
    async def activate_scene(payload, context):
        logger.info(f"Received request to activate scene: {payload.get('id')}")
        require(payload, "id")
        context.reply("activate-scene-result", scene=unwrap(await scenes().activate(payload["id"])))

    @router.route(Operation.GET_ACTIVE_SCENE)
    @replies_to("get-active-scene-result", scene=None)
    async def get_active_scene(payload, context):
        scene = unwrap(await scenes().active())
        if scene is None:
            raise ValueError("No active scene found")
        context.reply("get-active-scene-result", scene=scene)

    return router
