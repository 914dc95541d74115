"""
Shared Module

Functional error handling and event bus used by the host link and the relay.
"""

from .functional import Result, Success, Failure, from_callable, from_async_callable, setup_logging
from .events import (
    EventBus,
    BaseEvent,
    EventPriority,
    ConnectionStatusEvent,
    ReconnectScheduledEvent,
    FrameDroppedEvent,
    LeadershipChangedEvent
)

__all__ = [
    "Result",
    "Success",
    "Failure",
    "from_callable",
    "from_async_callable",
    "setup_logging",
    "EventBus",
    "BaseEvent",
    "EventPriority",
    "ConnectionStatusEvent",
    "ReconnectScheduledEvent",
    "FrameDroppedEvent",
    "LeadershipChangedEvent"
]
