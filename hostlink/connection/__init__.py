"""
Connection Module

Relay connection lifecycle, close code contract, backoff policy, wire frames
and inbound dispatch.
"""

from .backoff import BackoffPolicy
from .close_codes import CloseCode, ABNORMAL_CLOSURE, is_terminal, is_rejection
from .context import HandlerContext
from .dispatcher import Dispatcher, DispatchStats, Handler
from .frames import Frame, parse_frame, encode_frame, PING, PONG
from .manager import ConnectionManager, ConnectionState, Connector, build_client_id, build_target_url

__all__ = [
    "BackoffPolicy",
    "CloseCode",
    "ABNORMAL_CLOSURE",
    "is_terminal",
    "is_rejection",
    "HandlerContext",
    "Dispatcher",
    "DispatchStats",
    "Handler",
    "Frame",
    "parse_frame",
    "encode_frame",
    "PING",
    "PONG",
    "ConnectionManager",
    "ConnectionState",
    "Connector",
    "build_client_id",
    "build_target_url"
]
