"""
Host Link

Keeps one authoritative relay connection alive for a live host application
and routes the relay's operation requests to handlers.
"""

from .app import HostLinkApp
from .config import HostLinkConfig, load_config, validate_config
from .connection import ConnectionManager, ConnectionState, BackoffPolicy, CloseCode, HandlerContext
from .leadership import Candidate, LeaderGuard, elect_leader
from .routing import Operation, Route, Router, register_routers, replies_to

__version__ = "0.1.0"

__all__ = [
    "HostLinkApp",
    "HostLinkConfig",
    "load_config",
    "validate_config",
    "ConnectionManager",
    "ConnectionState",
    "BackoffPolicy",
    "CloseCode",
    "HandlerContext",
    "Candidate",
    "LeaderGuard",
    "elect_leader",
    "Operation",
    "Route",
    "Router",
    "register_routers",
    "replies_to"
]
