"""
Close Code Contract

WebSocket close codes shared with the relay. The numeric values are part of
the wire contract and must not change.
"""

from enum import IntEnum
from typing import Optional


class CloseCode(IntEnum):
    NORMAL = 1000
    INTERNAL_ERROR = 4000
    NO_CLIENT_ID = 4001
    NO_AUTH = 4002
    NO_TARGET_GROUP = 4003
    DUPLICATE_CONNECTION = 4004
    SERVER_SHUTDOWN = 4005


# Abnormal closure: no close frame was received (network drop, failed open)
ABNORMAL_CLOSURE = 1006

# Peer rejected our configuration; retrying cannot help
REJECTION_CODES = frozenset({
    CloseCode.NO_CLIENT_ID,
    CloseCode.NO_AUTH,
    CloseCode.NO_TARGET_GROUP,
})

TERMINAL_CODES = frozenset({CloseCode.NORMAL}) | REJECTION_CODES


def is_terminal(code: Optional[int]) -> bool:
    """True when a close with this code must not be followed by a reconnect"""
    return code in TERMINAL_CODES


def is_rejection(code: Optional[int]) -> bool:
    return code in REJECTION_CODES


def describe(code: Optional[int]) -> str:
    """Human readable name for logging"""
    if code is None:
        return "no code"
    try:
        return f"{CloseCode(code).name} ({code})"
    except ValueError:
        return str(code)
