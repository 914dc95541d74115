"""
Relay Module

Development relay peer for host link connections.
"""

from .registry import HostRegistry, HostConnection
from .server import create_relay_app, DEFAULT_CALL_TIMEOUT

__all__ = [
    "HostRegistry",
    "HostConnection",
    "create_relay_app",
    "DEFAULT_CALL_TIMEOUT"
]
