#!/usr/bin/env python3

"""
Shared Event System

Asynchronous event bus used to observe the host link from the outside:
connection status changes, scheduled reconnects, dropped frames and
leadership changes are published here instead of being pushed into UI or
status code directly.
"""

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .functional import Result, Success, Failure

logger = logging.getLogger(__name__)


class EventPriority(Enum):
    """Event processing priority levels"""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class BaseEvent(ABC):
    """Base class for all events in the system"""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    priority: EventPriority = EventPriority.NORMAL
    source: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Return the event type identifier"""
        pass


@dataclass
class ConnectionStatusEvent(BaseEvent):
    """Fired whenever the relay connection changes state"""
    status: str = "disconnected"  # connecting, open, reconnecting, disconnected, rejected, error
    endpoint: str = ""
    close_code: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "connection.status"

    def __post_init__(self):
        if self.status in ("rejected", "error"):
            self.priority = EventPriority.HIGH


@dataclass
class ReconnectScheduledEvent(BaseEvent):
    """Fired when a reconnect timer is armed"""
    attempt: int = 0
    delay: float = 0.0

    @property
    def event_type(self) -> str:
        return "connection.reconnect_scheduled"


@dataclass
class FrameDroppedEvent(BaseEvent):
    """Fired when an inbound frame is discarded without dispatch"""
    reason: str = "unknown"  # malformed, unknown_type
    frame_type: Optional[str] = None

    @property
    def event_type(self) -> str:
        return "frame.dropped"


@dataclass
class LeadershipChangedEvent(BaseEvent):
    """Fired when an election produces a different leader"""
    leader_id: Optional[str] = None
    is_leader: bool = False

    @property
    def event_type(self) -> str:
        return "leadership.changed"


EventHandler = Callable[[BaseEvent], Result[None, Exception]]
AsyncEventHandler = Callable[[BaseEvent], Awaitable[Result[None, Exception]]]


class EventBus:
    """
    Central event bus for decoupled communication

    Events are queued by publish()/publish_nowait() and delivered to
    subscribers by a background processor task between start() and stop().
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._async_handlers: Dict[str, List[AsyncEventHandler]] = {}
        self._running = False
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._processor_task: Optional[asyncio.Task] = None

        logger.debug("Event bus initialized")

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Handler subscribed to {event_type}")

    def subscribe_async(self, event_type: str, handler: AsyncEventHandler) -> None:
        """Subscribe async handler to events of a specific type"""
        self._async_handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Async handler subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Handler unsubscribed from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    async def start(self) -> None:
        """Start the event bus processor"""
        if self._running:
            logger.warning("Event bus is already running")
            return

        self._running = True
        self._processor_task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self) -> None:
        """Stop the event bus processor"""
        if not self._running:
            return

        self._running = False

        if self._processor_task:
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
            self._processor_task = None

        logger.info("Event bus stopped")

    async def publish(self, event: BaseEvent) -> Result[None, Exception]:
        """Publish an event to the bus"""
        return self.publish_nowait(event)

    def publish_nowait(self, event: BaseEvent) -> Result[None, Exception]:
        """Queue an event from synchronous code running on the event loop"""
        try:
            self._event_queue.put_nowait(event)
            logger.debug(f"Event published: {event.event_type} (ID: {event.event_id})")
            return Success(None)
        except Exception as e:
            logger.error(f"Failed to publish event {event.event_type}: {e}")
            return Failure(e)

    async def _process_events(self) -> None:
        while self._running:
            try:
                event = await self._event_queue.get()
                await self._handle_event(event)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error processing events: {e}")

    async def _handle_event(self, event: BaseEvent) -> None:
        event_type = event.event_type

        for handler in self._handlers.get(event_type, []):
            try:
                result = handler(event)
                if result is not None and result.is_failure():
                    logger.error(f"Handler failed for {event_type}: {result.error}")
            except Exception as e:
                logger.error(f"Handler exception for {event_type}: {e}")

        async_handlers = self._async_handlers.get(event_type, [])
        if async_handlers:
            results = await asyncio.gather(
                *(handler(event) for handler in async_handlers),
                return_exceptions=True
            )
            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(f"Async handler {i} failed for {event_type}: {result}")
                elif isinstance(result, Result) and result.is_failure():
                    logger.error(f"Async handler {i} returned failure for {event_type}: {result.error}")
