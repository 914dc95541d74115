#!/usr/bin/env python3

"""
Relay Host Registry

Tracks the connected hosts by identity and the calls waiting for a reply.
Each identity maps to at most one socket; a call is a future keyed by its
host and requestId and is resolved by the first frame from that host that
echoes that id.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from fastapi import WebSocket

from shared.functional import Result, Success, Failure

logger = logging.getLogger(__name__)


@dataclass
class HostConnection:
    client_id: str
    websocket: WebSocket
    connected_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    frames_received: int = 0

    def touch(self) -> None:
        self.last_activity = time.time()
        self.frames_received += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.client_id,
            "connectedAt": self.connected_at,
            "lastActivity": self.last_activity,
            "framesReceived": self.frames_received
        }


class HostRegistry:
    def __init__(self):
        self._hosts: Dict[str, HostConnection] = {}
        self._pending: Dict[Tuple[str, str], asyncio.Future] = {}

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._hosts

    def get(self, client_id: str) -> Optional[HostConnection]:
        return self._hosts.get(client_id)

    def hosts(self) -> List[HostConnection]:
        return list(self._hosts.values())

    @property
    def pending_calls(self) -> int:
        return len(self._pending)

    def register(self, client_id: str, websocket: WebSocket) -> Result[HostConnection, str]:
        if client_id in self._hosts:
            return Failure(f"Client {client_id} is already connected")

        connection = HostConnection(client_id=client_id, websocket=websocket)
        self._hosts[client_id] = connection
        logger.info(f"Host {client_id} registered ({len(self._hosts)} connected)")
        return Success(connection)

    def unregister(self, client_id: str, websocket: WebSocket) -> bool:
        """Forget the host if the given socket is still the registered one"""
        connection = self._hosts.get(client_id)
        if connection is None or connection.websocket is not websocket:
            return False
        del self._hosts[client_id]
        logger.info(f"Host {client_id} unregistered ({len(self._hosts)} connected)")
        return True

    def open_call(self, client_id: str, frame: Dict[str, Any]) -> Result[asyncio.Future, str]:
        """
        Assign a requestId when the frame has none and start waiting for it

        A requestId that is already waiting on the same host is refused, so a
        reply can never complete the wrong caller.
        """
        request_id = frame.get("requestId") or str(uuid.uuid4())
        key = (client_id, request_id)
        if key in self._pending:
            return Failure(f"Request {request_id} is already pending on {client_id}")

        frame["requestId"] = request_id
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        return Success(future)

    def close_call(self, client_id: str, request_id: str) -> None:
        future = self._pending.pop((client_id, request_id), None)
        if future is not None and not future.done():
            future.cancel()

    def resolve(self, client_id: str, frame: Dict[str, Any]) -> bool:
        """Complete the call waiting on this host for the frame's requestId, if any"""
        request_id = frame.get("requestId")
        if not isinstance(request_id, str):
            return False

        future = self._pending.pop((client_id, request_id), None)
        if future is None or future.done():
            return False

        future.set_result(frame)
        return True
