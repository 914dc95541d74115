#!/usr/bin/env python3

"""
Relay Server Integration Tests

Drives the development relay through FastAPI's TestClient: handshake
rejections, the keepalive answer, the client listing and requestId
correlated calls, including the refusal of a requestId that is already
pending on the same host.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from hostlink.connection import CloseCode
from relay import HostRegistry, create_relay_app
from tests.test_utils import assert_result_failure, assert_result_success


@pytest.fixture
def relay_client():
    app = create_relay_app(tokens={"secret"}, default_timeout=0.5)
    with TestClient(app) as client:
        yield client


def expect_close(websocket):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        websocket.receive_text()
    return exc_info.value.code


def handshake(websocket):
    """Round-trip a ping so the host is registered before the test proceeds"""
    websocket.send_json({"type": "ping"})
    assert websocket.receive_json() == {"type": "pong"}


@pytest.mark.integration
@pytest.mark.websocket
class TestRelayHandshake:

    def test_websocket_without_id_is_rejected(self, relay_client):
        with relay_client.websocket_connect("/relay?token=secret") as websocket:
            assert expect_close(websocket) == CloseCode.NO_CLIENT_ID

    @pytest.mark.parametrize("query", ["id=h1", "id=h1&token=", "id=h1&token=wrong"])
    def test_websocket_bad_token_is_rejected(self, relay_client, query):
        with relay_client.websocket_connect(f"/relay?{query}") as websocket:
            assert expect_close(websocket) == CloseCode.NO_AUTH

    def test_websocket_duplicate_identity_is_rejected(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as first:
            handshake(first)

            with relay_client.websocket_connect("/relay?id=h1&token=secret") as second:
                assert expect_close(second) == CloseCode.DUPLICATE_CONNECTION

            # The established connection keeps working
            handshake(first)
            assert relay_client.get("/api/clients").json()["count"] == 1

    def test_websocket_ping_answered_with_pong(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

    def test_websocket_malformed_frame_is_ignored(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            websocket.send_text("{not json")
            websocket.send_text("[1, 2]")
            handshake(websocket)

    def test_any_token_accepted_without_allow_list(self):
        with TestClient(create_relay_app()) as client:
            with client.websocket_connect("/relay?id=h1&token=anything") as websocket:
                handshake(websocket)


@pytest.mark.integration
class TestRelayApi:

    def test_clients_listing(self, relay_client):
        assert relay_client.get("/api/clients").json() == {"count": 0, "clients": []}

        with relay_client.websocket_connect("/relay?id=group-u1&token=secret") as websocket:
            handshake(websocket)

            body = relay_client.get("/api/clients").json()
            assert body["count"] == 1
            assert body["clients"][0]["id"] == "group-u1"
            assert body["clients"][0]["framesReceived"] == 1

        assert relay_client.get("/api/clients").json()["count"] == 0

    def test_call_unknown_host(self, relay_client):
        response = relay_client.post("/api/call/nobody", json={"type": "get-structure"})
        assert response.status_code == 404

    def test_call_requires_type(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

            assert relay_client.post("/api/call/h1", json={"uuid": "x"}).status_code == 400
            assert relay_client.post("/api/call/h1", json={"type": "x", "timeout": -1}).status_code == 400

    def test_call_times_out_without_reply(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

            response = relay_client.post("/api/call/h1", json={"type": "get-structure", "timeout": 0.1})

            assert response.status_code == 504
            forwarded = websocket.receive_json()
            assert forwarded["type"] == "get-structure"
            assert "timeout" not in forwarded
            assert relay_client.app.state.registry.pending_calls == 0

    def test_call_is_correlated_by_request_id(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

            with ThreadPoolExecutor(max_workers=1) as pool:
                pending = pool.submit(
                    relay_client.post,
                    "/api/call/h1",
                    json={"type": "get-entity", "uuid": "Actor.1", "timeout": 5}
                )

                request = websocket.receive_json()
                assert request["type"] == "get-entity"
                request_id = request["requestId"]

                # An unrelated frame must not complete the call
                websocket.send_json({"type": "entity-data", "requestId": "someone-else"})
                websocket.send_json({
                    "type": "entity-data",
                    "requestId": request_id,
                    "uuid": "Actor.1",
                    "data": {"name": "Goblin"}
                })

                response = pending.result(timeout=5)

        assert response.status_code == 200
        assert response.json() == {
            "type": "entity-data",
            "requestId": request_id,
            "uuid": "Actor.1",
            "data": {"name": "Goblin"}
        }

    def test_call_keeps_caller_request_id(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

            with ThreadPoolExecutor(max_workers=1) as pool:
                pending = pool.submit(
                    relay_client.post,
                    "/api/call/h1",
                    json={"type": "get-structure", "requestId": "abc-123"}
                )

                assert websocket.receive_json() == {"type": "get-structure", "requestId": "abc-123"}
                websocket.send_json({"type": "structure-data", "requestId": "abc-123", "folders": []})

                response = pending.result(timeout=5)

        assert response.json()["requestId"] == "abc-123"

    def test_duplicate_pending_request_id_is_refused(self, relay_client):
        with relay_client.websocket_connect("/relay?id=h1&token=secret") as websocket:
            handshake(websocket)

            with ThreadPoolExecutor(max_workers=1) as pool:
                first = pool.submit(
                    relay_client.post,
                    "/api/call/h1",
                    json={"type": "get-structure", "requestId": "dup", "timeout": 5}
                )
                assert websocket.receive_json()["requestId"] == "dup"

                second = relay_client.post("/api/call/h1", json={"type": "get-scenes", "requestId": "dup"})
                assert second.status_code == 409

                websocket.send_json({"type": "structure-data", "requestId": "dup", "folders": []})
                response = first.result(timeout=5)

        assert response.status_code == 200
        assert response.json()["type"] == "structure-data"
        assert relay_client.app.state.registry.pending_calls == 0


@pytest.mark.integration
class TestHostRegistryCalls:

    @pytest.mark.asyncio
    async def test_pending_request_id_cannot_be_reopened(self):
        registry = HostRegistry()
        first = assert_result_success(registry.open_call("h1", {"type": "get-structure", "requestId": "r1"}))

        assert_result_failure(registry.open_call("h1", {"type": "get-scenes", "requestId": "r1"}), "already pending")

        assert registry.resolve("h1", {"type": "structure-data", "requestId": "r1"})
        assert (await first)["type"] == "structure-data"
        assert registry.pending_calls == 0

    @pytest.mark.asyncio
    async def test_same_request_id_on_different_hosts(self):
        registry = HostRegistry()
        on_h1 = assert_result_success(registry.open_call("h1", {"type": "x", "requestId": "r1"}))
        on_h2 = assert_result_success(registry.open_call("h2", {"type": "x", "requestId": "r1"}))

        assert not registry.resolve("h3", {"type": "y", "requestId": "r1"})
        assert registry.resolve("h2", {"type": "y", "requestId": "r1", "from": "h2"})

        assert (await on_h2)["from"] == "h2"
        assert not on_h1.done()

        registry.close_call("h1", "r1")
        assert on_h1.cancelled()
        assert registry.pending_calls == 0

    @pytest.mark.asyncio
    async def test_request_id_is_assigned_when_missing(self):
        registry = HostRegistry()
        frame = {"type": "get-structure"}

        assert_result_success(registry.open_call("h1", frame))

        assert frame["requestId"]
        assert registry.pending_calls == 1
        registry.close_call("h1", frame["requestId"])


@pytest.mark.integration
class TestRelayShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_closes_hosts_with_server_shutdown(self):
        class RecordingSocket:
            def __init__(self):
                self.closed_with = None

            async def close(self, code=1000, reason=None):
                self.closed_with = (code, reason)

        app = create_relay_app()
        socket = RecordingSocket()
        app.state.registry.register("h1", socket)

        async with app.router.lifespan_context(app):
            pass

        assert socket.closed_with == (CloseCode.SERVER_SHUTDOWN, "Server shutting down")
