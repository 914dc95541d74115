"""
Routing Module

Routes, routers and the feature routers that answer relay operations.
"""

from ..connection import HandlerContext
from .router import (
    Operation,
    Route,
    Router,
    register_routers,
    replies_to
)
from .routers import all_routers

__all__ = [
    "HandlerContext",
    "Operation",
    "Route",
    "Router",
    "register_routers",
    "replies_to",
    "all_routers"
]
