"""
Feature Routers

One router per feature area. Each factory takes the host collaborators it
needs, so handlers never reach for global state.
"""

from typing import List

from ...host import HostServices
from ..router import Router
from .ping_pong import create_ping_pong_router
from .entity import create_entity_router
from .search import create_search_router
from .structure import create_structure_router
from .selection import create_selection_router
from .file_system import create_file_system_router
from .macro import create_macro_router
from .encounter import create_encounter_router
from .scenes import create_scenes_router


def all_routers(services: HostServices) -> List[Router]:
    """Every built-in router, in registration order"""
    return [
        create_ping_pong_router(),
        create_entity_router(services),
        create_search_router(services),
        create_structure_router(services),
        create_selection_router(services),
        create_file_system_router(services),
        create_macro_router(services),
        create_encounter_router(services),
        create_scenes_router(services)
    ]


__all__ = [
    "all_routers",
    "create_ping_pong_router",
    "create_entity_router",
    "create_search_router",
    "create_structure_router",
    "create_selection_router",
    "create_file_system_router",
    "create_macro_router",
    "create_encounter_router",
    "create_scenes_router"
]
