"""
Inbound Frame Dispatcher

Owns the dispatch table (operation name -> handler) and turns each inbound
text frame into exactly one handler invocation, or a logged drop.

Handlers are called as handler(payload, context). A handler may return an
awaitable; it is then scheduled as a task and not awaited, so a slow
handler never delays the frames behind it.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from .context import HandlerContext, SendFunction
from .frames import parse_frame

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], HandlerContext], Union[None, Awaitable[Any]]]
DropListener = Callable[[str, Optional[str]], None]


@dataclass
class DispatchStats:
    frames_received: int = 0
    frames_dispatched: int = 0
    frames_dropped: int = 0
    handler_errors: int = 0


class Dispatcher:
    """Routing table plus the bookkeeping for in-flight async handlers"""

    def __init__(self, send: SendFunction, on_drop: Optional[DropListener] = None):
        self._send = send
        self._on_drop = on_drop
        self._handlers: Dict[str, Handler] = {}
        self._tasks: Set[asyncio.Future] = set()
        self.stats = DispatchStats()

    def register(self, operation: str, handler: Handler) -> None:
        """Register a handler; a later registration for the same name wins"""
        previous = self._handlers.get(operation)
        if previous is not None and previous is not handler:
            logger.warning(f"Handler for '{operation}' replaced by a later registration")
        self._handlers[operation] = handler
        logger.debug(f"Registered handler for message type: {operation}")

    def unregister(self, operation: str) -> bool:
        return self._handlers.pop(operation, None) is not None

    def handler_for(self, operation: str) -> Optional[Handler]:
        return self._handlers.get(operation)

    @property
    def operations(self) -> List[str]:
        return list(self._handlers)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def dispatch(self, raw: Union[str, bytes]) -> bool:
        """
        Route one inbound frame

        Returns True when a handler was invoked. Malformed frames and frames
        of an unknown type are logged and dropped without a reply.
        """
        self.stats.frames_received += 1

        parsed = parse_frame(raw)
        if parsed.is_failure():
            logger.warning(f"Dropping malformed frame: {parsed.error}")
            self._dropped("malformed", None)
            return False

        frame = parsed.value
        handler = self._handlers.get(frame.type)
        if handler is None:
            logger.warning(f"No handler for message type: {frame.type}")
            self._dropped("unknown_type", frame.type)
            return False

        logger.debug(f"Handling message of type: {frame.type} (requestId={frame.request_id})")
        context = HandlerContext(send=self._send, operation=frame.type, request_id=frame.request_id)

        try:
            outcome = handler(frame.payload, context)
        except Exception as e:
            self.stats.handler_errors += 1
            logger.error(f"Handler for '{frame.type}' raised (requestId={frame.request_id}): {e}", exc_info=True)
            return True

        self.stats.frames_dispatched += 1

        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(partial(self._task_done, frame.type, frame.request_id))

        return True

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight handler tasks; returns how many are still running"""
        if not self._tasks:
            return 0
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return len(pending)

    def _task_done(self, operation: str, request_id: Optional[str], task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.stats.handler_errors += 1
            logger.error(f"Async handler for '{operation}' failed (requestId={request_id}): {error}", exc_info=error)

    def _dropped(self, reason: str, frame_type: Optional[str]) -> None:
        self.stats.frames_dropped += 1
        if self._on_drop is not None:
            self._on_drop(reason, frame_type)
