#!/usr/bin/env python3

"""
Relay Connection Manager

Owns the single WebSocket connection from the host to the relay: builds the
target URL from the client identity and token, opens and closes the socket,
keeps it alive with application-level pings, reconnects with exponential
backoff, and feeds inbound frames to the dispatcher.

All state is touched only from the event loop thread. The only background
work the manager owns is the reader/writer tasks of the live socket, the
keepalive task and the reconnect timer; all of them are cancelled on
disconnect().
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed

from shared.events import (
    EventBus,
    ConnectionStatusEvent,
    ReconnectScheduledEvent,
    FrameDroppedEvent
)
from .backoff import BackoffPolicy
from .close_codes import ABNORMAL_CLOSURE, CloseCode, describe, is_rejection, is_terminal
from .dispatcher import Dispatcher, DispatchStats, Handler
from .frames import PING, encode_frame

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"


def build_client_id(group_id: str, caller_id: str) -> str:
    """Stable identity that groups co-located callers under one group id"""
    return f"{group_id}-{caller_id}"


def build_target_url(relay_url: str, client_id: str, token: str) -> str:
    """Relay URL with the id and token query parameters set"""
    parts = urlsplit(relay_url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query["id"] = client_id
    query["token"] = token
    return urlunsplit(parts._replace(query=urlencode(query)))


class ConnectionManager:
    """
    Single logical connection to the relay

    connect()/disconnect() drive the lifecycle; send() writes a frame when
    the connection is open; on_message_type() fills the dispatch table.
    """

    def __init__(self,
                 relay_url: str,
                 token: str,
                 client_id: str,
                 keepalive_interval: float = 30.0,
                 backoff: Optional[BackoffPolicy] = None,
                 open_timeout: float = 5.0,
                 connector: Optional[Connector] = None,
                 event_bus: Optional[EventBus] = None):
        self.relay_url = relay_url
        self.token = token
        self.client_id = client_id
        self.keepalive_interval = keepalive_interval
        self.backoff = backoff or BackoffPolicy()
        self.open_timeout = open_timeout
        self._connector = connector or self._open_websocket
        self._event_bus = event_bus

        self._state = ConnectionState.DISCONNECTED
        self._socket: Optional[Any] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_attempt = 0
        self._frames_sent = 0

        self._dispatcher = Dispatcher(self.send, on_drop=self._publish_drop)

        logger.info(f"Connection manager created for client {client_id} -> {relay_url}")

    # -- public state -------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        return self._reconnect_attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def target_url(self) -> str:
        return build_target_url(self.relay_url, self.client_id, self.token)

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def stats(self) -> DispatchStats:
        return self._dispatcher.stats

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def in_flight(self) -> int:
        return self._dispatcher.in_flight

    def is_connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    # -- lifecycle ----------------------------------------------------------

    async def connect(self) -> None:
        """
        Open a fresh connection

        Any live socket is closed first (normal closure, no reconnect), and
        any armed reconnect timer is cancelled, so at most one socket exists.
        """
        self._cancel_reconnect_timer()
        if self._socket is not None or self._reader_task is not None:
            logger.info("Closing existing connection before reconnecting")
            await self._teardown(CloseCode.NORMAL, "Reconnecting")

        url = self.target_url
        logger.info(f"Connecting to relay at {self.relay_url} as {self.client_id}")
        self._set_state(ConnectionState.CONNECTING)
        self._reader_task = asyncio.create_task(self._run(url))

    async def disconnect(self) -> None:
        """Close the connection for good; no automatic reconnect follows"""
        self._cancel_reconnect_timer()

        connect_task, self._connect_task = self._connect_task, None
        if connect_task is not None and connect_task is not asyncio.current_task() and not connect_task.done():
            connect_task.cancel()

        if self._socket is not None or self._reader_task is not None:
            logger.info("Disconnecting from relay")
        await self._teardown(CloseCode.NORMAL, "Disconnecting")

        self._reconnect_attempt = 0
        self._set_state(ConnectionState.DISCONNECTED)

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight handlers to finish; disconnect never cancels them"""
        return await self._dispatcher.drain(timeout)

    # -- messaging ----------------------------------------------------------

    def send(self, message: Mapping[str, Any]) -> bool:
        """
        Write one frame if the connection is open

        Never raises. Returns False (and logs) when the connection is not
        open or the message cannot be serialized; nothing is buffered.
        """
        frame_type = message.get("type") if isinstance(message, Mapping) else None

        if self._state is not ConnectionState.OPEN or self._outbox is None:
            logger.warning(f"Cannot send '{frame_type}': connection is {self._state.value}")
            return False

        encoded = encode_frame(message)
        if encoded.is_failure():
            logger.error(f"Cannot send '{frame_type}': {encoded.error}")
            return False

        self._outbox.put_nowait(encoded.value)
        self._frames_sent += 1
        logger.debug(f"Queued frame '{frame_type}' for sending")
        return True

    def on_message_type(self, operation: str, handler: Handler) -> None:
        """Register or replace the handler for an inbound message type"""
        self._dispatcher.register(operation, handler)

    # -- socket events ------------------------------------------------------

    async def _open_websocket(self, url: str) -> Any:
        return await websockets.connect(
            url,
            open_timeout=self.open_timeout,
            ping_interval=None,  # liveness is the keepalive frame's job
            close_timeout=3,
            max_size=2**24
        )

    async def _run(self, url: str) -> None:
        """Reader task: open the socket, pump inbound frames, report the close"""
        try:
            socket = await self._connector(url)
        except Exception as e:
            # Refused, timed out, or rejected during the HTTP handshake
            self._on_error(e)
            self._on_close(ABNORMAL_CLOSURE, f"Connection failed: {e}")
            return

        self._socket = socket
        self._on_open(socket)

        code, reason = ABNORMAL_CLOSURE, ""
        try:
            async for raw in socket:
                self._dispatcher.dispatch(raw)
            code, reason = self._close_details(socket)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                code, reason = e.rcvd.code, e.rcvd.reason
        except Exception as e:
            self._on_error(e)

        self._on_close(code, reason)

    def _on_open(self, socket: Any) -> None:
        logger.info(f"Connected to relay as {self.client_id}")
        self._reconnect_attempt = 0
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop(socket, self._outbox))
        self._set_state(ConnectionState.OPEN)

        self.send(PING)
        self._keepalive_task = asyncio.create_task(self._keepalive_loop())

    def _on_error(self, error: BaseException) -> None:
        # Errors never change state by themselves; the close that follows does
        logger.error(f"Relay connection error: {error}")
        self._publish(ConnectionStatusEvent(
            status="error",
            endpoint=self.relay_url,
            error_message=str(error),
            source="connection_manager"
        ))

    def _on_close(self, code: int, reason: str) -> None:
        logger.info(f"Relay connection closed: {describe(code)} {reason}".rstrip())
        self._release_socket()

        if is_terminal(code):
            if is_rejection(code):
                logger.error(
                    f"Relay rejected this client ({describe(code)}): {reason or 'no reason given'}. "
                    f"Check the client id and token configuration; not reconnecting"
                )
                self._publish(ConnectionStatusEvent(
                    status="rejected",
                    endpoint=self.relay_url,
                    close_code=code,
                    error_message=reason or None,
                    source="connection_manager"
                ))
            self._set_state(ConnectionState.DISCONNECTED, close_code=code)
            return

        self._schedule_reconnect()

    # -- reconnect ----------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return

        if self.backoff.exhausted(self._reconnect_attempt):
            logger.error(f"Maximum reconnection attempts reached ({self._reconnect_attempt})")
            self._set_state(ConnectionState.DISCONNECTED)
            return

        delay = self.backoff.delay(self._reconnect_attempt)
        self._reconnect_attempt += 1
        self._set_state(ConnectionState.RECONNECTING)

        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._on_reconnect_timer)

        logger.info(f"Scheduling reconnect in {delay:.1f}s (attempt {self._reconnect_attempt})")
        self._publish(ReconnectScheduledEvent(
            attempt=self._reconnect_attempt,
            delay=delay,
            source="connection_manager"
        ))

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        self._connect_task = asyncio.ensure_future(self.connect())

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    # -- background tasks ---------------------------------------------------

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            if self._state is ConnectionState.OPEN:
                self.send(PING)

    async def _write_loop(self, socket: Any, outbox: asyncio.Queue) -> None:
        try:
            while True:
                text = await outbox.get()
                await socket.send(text)
        except ConnectionClosed:
            logger.debug("Writer stopped: connection closed")
        except Exception as e:
            self._on_error(e)

    async def _teardown(self, code: int, reason: str) -> None:
        """Stop the live socket and its tasks without triggering a reconnect"""
        reader, self._reader_task = self._reader_task, None
        socket = self._socket
        self._release_socket()

        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if socket is not None:
            try:
                await socket.close(code, reason)
            except Exception as e:
                # Socket may already be dead
                logger.debug(f"Error during websocket close (ignored): {e}")

    def _release_socket(self) -> None:
        """Forget the socket and cancel the tasks bound to it"""
        self._socket = None
        self._outbox = None
        if self._reader_task is not None and self._reader_task is asyncio.current_task():
            self._reader_task = None

        for task in (self._keepalive_task, self._writer_task):
            if task is not None and not task.done():
                task.cancel()
        self._keepalive_task = None
        self._writer_task = None

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _close_details(socket: Any) -> Tuple[int, str]:
        code = getattr(socket, "close_code", None)
        reason = getattr(socket, "close_reason", None) or ""
        return (code if code is not None else ABNORMAL_CLOSURE), reason

    def _set_state(self, state: ConnectionState, close_code: Optional[int] = None) -> None:
        if state is self._state:
            return
        logger.debug(f"Connection state {self._state.value} -> {state.value}")
        self._state = state
        self._publish(ConnectionStatusEvent(
            status=state.value,
            endpoint=self.relay_url,
            close_code=close_code,
            source="connection_manager"
        ))

    def _publish_drop(self, reason: str, frame_type: Optional[str]) -> None:
        self._publish(FrameDroppedEvent(reason=reason, frame_type=frame_type, source="dispatcher"))

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish_nowait(event)
