#!/usr/bin/env python3

"""
Routes and Routers

A Route binds one operation name to one handler. A Router is a named,
ordered group of routes contributed by one feature area; reflect() copies its
routes into a connection manager's dispatch table. Routers hold no runtime
state once registered.
"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from ..connection import ConnectionManager, Handler, HandlerContext

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operation names the built-in routers answer to"""
    PING = "ping"
    PONG = "pong"
    GET_ENTITY = "get-entity"
    CREATE_ENTITY = "create-entity"
    UPDATE_ENTITY = "update-entity"
    DELETE_ENTITY = "delete-entity"
    PERFORM_SEARCH = "perform-search"
    GET_STRUCTURE = "get-structure"
    SELECT_ENTITIES = "select-entities"
    GET_SELECTED_ENTITIES = "get-selected-entities"
    GET_FILE_SYSTEM = "get-file-system"
    UPLOAD_FILE = "upload-file"
    DOWNLOAD_FILE = "download-file"
    GET_MACROS = "get-macros"
    EXECUTE_MACRO = "execute-macro"
    GET_ENCOUNTERS = "get-encounters"
    START_ENCOUNTER = "start-encounter"
    END_ENCOUNTER = "end-encounter"
    ENCOUNTER_NEXT_TURN = "encounter-next-turn"
    ENCOUNTER_NEXT_ROUND = "encounter-next-round"
    ENCOUNTER_PREVIOUS_TURN = "encounter-previous-turn"
    ENCOUNTER_PREVIOUS_ROUND = "encounter-previous-round"
    ADD_TO_ENCOUNTER = "add-to-encounter"
    REMOVE_FROM_ENCOUNTER = "remove-from-encounter"
    GET_SCENES = "get-scenes"
    GET_SCENE = "get-scene"
    ACTIVATE_SCENE = "activate-scene"
    GET_ACTIVE_SCENE = "get-active-scene"


def operation_name(operation: Union[str, Operation]) -> str:
    return operation.value if isinstance(operation, Operation) else str(operation)


@dataclass(frozen=True)
class Route:
    operation: str
    handler: Handler

    def __post_init__(self):
        object.__setattr__(self, "operation", operation_name(self.operation))
        if not self.operation:
            raise ValueError("Route operation name must not be empty")


class Router:
    """Named, ordered collection of routes from one feature area"""

    def __init__(self, name: str, routes: Optional[Iterable[Route]] = None):
        self.name = name
        self.routes: List[Route] = list(routes or [])

    def add_route(self, route: Route) -> None:
        # Uniqueness is the dispatch table's concern, not the router's
        self.routes.append(route)

    def route(self, operation: Union[str, Operation]) -> Callable[[Handler], Handler]:
        """Decorator form of add_route"""
        def decorator(handler: Handler) -> Handler:
            self.add_route(Route(operation_name(operation), handler))
            return handler
        return decorator

    @property
    def operations(self) -> List[str]:
        return [route.operation for route in self.routes]

    def reflect(self, manager: ConnectionManager) -> None:
        """Register every route with the manager, in order"""
        for route in self.routes:
            manager.on_message_type(route.operation, route.handler)
        logger.debug(f"Router '{self.name}' registered {len(self.routes)} routes")

    def __repr__(self) -> str:
        return f"Router({self.name!r}, operations={self.operations})"


def register_routers(manager: ConnectionManager, routers: Iterable[Router]) -> int:
    """
    Register routers with a connection manager

    This is the only registration path for feature operations. When two
    routes share an operation name, the one registered last takes effect
    and the dispatcher logs the replacement.
    """
    count = 0
    for router in routers:
        router.reflect(manager)
        count += 1
    logger.info(f"Registered {count} routers with connection manager")
    return count


AsyncHandler = Callable[[Dict[str, Any], HandlerContext], Awaitable[Any]]


def replies_to(reply_type: str, **error_fields: Any) -> Callable[[AsyncHandler], AsyncHandler]:
    """
    Turn exceptions raised by an async handler into an error reply

    The reply has the given type, an ``error`` field with the exception
    message, the request's requestId, and any extra ``error_fields`` (for
    example an empty result list) so callers see the same reply shape on
    success and failure.
    """
    def decorator(func: AsyncHandler) -> AsyncHandler:
        @functools.wraps(func)
        async def wrapper(payload: Dict[str, Any], context: HandlerContext) -> Any:
            try:
                return await func(payload, context)
            except Exception as e:
                logger.error(f"Error handling '{context.operation}' (requestId={context.request_id}): {e}")
                context.fail(reply_type, e, **error_fields)
                return None
        return wrapper
    return decorator
