#!/usr/bin/env python3

"""
Development Relay

FastAPI app that plays the relay side of the host link protocol:

- WS  /relay?id=<client id>&token=<token>   host connections
- GET /api/clients                          connected host identities
- POST /api/call/{client_id}                send a frame to a host and wait
                                            for the reply with its requestId

Connections that fail the handshake checks are accepted and then closed with
the matching application close code, so the host can tell a rejection from
a transient failure.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from hostlink.connection.close_codes import CloseCode
from shared.functional import from_callable

from .registry import HostRegistry

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 10.0


class HostInfo(BaseModel):
    id: str
    connectedAt: float
    lastActivity: float
    framesReceived: int


class ClientsResponse(BaseModel):
    count: int
    clients: List[HostInfo]


async def _close(websocket: WebSocket, code: int, reason: str) -> None:
    try:
        await websocket.close(code=code, reason=reason)
    except Exception as e:
        # Socket may already be gone
        logger.debug(f"Error closing websocket (ignored): {e}")


def create_relay_app(tokens: Optional[Iterable[str]] = None,
                     default_timeout: float = DEFAULT_CALL_TIMEOUT) -> FastAPI:
    """
    Build a relay app

    tokens restricts the accepted auth tokens; when None any non-empty token
    is accepted.
    """
    allowed = set(tokens) if tokens is not None else None
    registry = HostRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Relay starting")
        yield
        hosts = registry.hosts()
        logger.info(f"Relay shutting down; closing {len(hosts)} host connections")
        for host in hosts:
            await _close(host.websocket, CloseCode.SERVER_SHUTDOWN, "Server shutting down")

    app = FastAPI(
        title="Host Link Relay",
        description="Development relay for host link connections",
        lifespan=lifespan
    )
    app.state.registry = registry

    @app.websocket("/relay")
    async def relay_socket(websocket: WebSocket,
                           client_id: Optional[str] = Query(None, alias="id"),
                           token: Optional[str] = Query(None)):
        await websocket.accept()

        if not client_id:
            logger.warning("Rejecting connection without client id")
            await _close(websocket, CloseCode.NO_CLIENT_ID, "Client ID required")
            return

        if not token or (allowed is not None and token not in allowed):
            logger.warning(f"Rejecting {client_id}: invalid or missing token")
            await _close(websocket, CloseCode.NO_AUTH, "Authentication failed")
            return

        registered = registry.register(client_id, websocket)
        if registered.is_failure():
            logger.warning(f"Rejecting {client_id}: {registered.error}")
            await _close(websocket, CloseCode.DUPLICATE_CONNECTION, "Duplicate connection")
            return

        connection = registered.value
        try:
            while True:
                text = await websocket.receive_text()
                connection.touch()

                parsed = from_callable(lambda: json.loads(text))
                if parsed.is_failure() or not isinstance(parsed.value, dict):
                    logger.warning(f"Ignoring malformed frame from {client_id}")
                    continue

                frame = parsed.value
                if frame.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue

                if not registry.resolve(client_id, frame):
                    logger.info(f"Frame from {client_id} without a waiting call: {frame.get('type')}")

        except WebSocketDisconnect as e:
            logger.info(f"Host {client_id} disconnected (code {e.code})")
        finally:
            registry.unregister(client_id, websocket)

    @app.get("/api/clients", response_model=ClientsResponse)
    async def list_clients():
        hosts = [HostInfo(**host.to_dict()) for host in registry.hosts()]
        return ClientsResponse(count=len(hosts), clients=hosts)

    @app.post("/api/call/{client_id}")
    async def call_host(client_id: str, frame: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        connection = registry.get(client_id)
        if connection is None:
            raise HTTPException(status_code=404, detail=f"Client {client_id} is not connected")

        if not isinstance(frame.get("type"), str) or not frame["type"]:
            raise HTTPException(status_code=400, detail="Frame must have a non-empty string 'type'")

        timeout = frame.pop("timeout", None) or default_timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise HTTPException(status_code=400, detail="timeout must be a positive number")

        opened = registry.open_call(client_id, frame)
        if opened.is_failure():
            raise HTTPException(status_code=409, detail=opened.error)

        future = opened.value
        request_id = frame["requestId"]
        try:
            try:
                await connection.websocket.send_json(frame)
            except Exception as e:
                logger.error(f"Failed to forward '{frame['type']}' to {client_id}: {e}")
                raise HTTPException(status_code=502, detail=f"Failed to reach {client_id}")

            logger.info(f"Forwarded '{frame['type']}' to {client_id} (requestId {request_id})")
            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                raise HTTPException(status_code=504, detail=f"No reply from {client_id} within {timeout}s")
        finally:
            registry.close_call(client_id, request_id)

    return app
