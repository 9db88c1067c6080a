# tests/test_gateway.py
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.protocol import ResponseFrame
from server.backend_app import create_backend_app
from server.backends import HttpBackend, LocalBackend
from server.gateway import GatewaySession, State, create_gateway_app

AUTH = {"Authorization": "Bearer secret"}
DEADBEEF = bytes.fromhex("DEADBEEF")


class FakeBackend:
    def __init__(self):
        self.calls = []

    def call(self, frame, client):
        self.calls.append((frame.method, frame.path, frame.payload, client))
        return ResponseFrame(200, b"x")


def test_session_list_round_trip():
    backend = FakeBackend()
    session = GatewaySession(backend, "peer")
    assert session.feed("LIST /docs") == ["200 1", b"x"]
    assert backend.calls == [("LIST", "/docs", None, "peer")]
    assert session.state is State.AWAITING_REQUEST


def test_session_put_waits_for_binary():
    backend = FakeBackend()
    session = GatewaySession(backend)
    assert session.feed("PUT /a.bin") == []
    assert session.state is State.AWAITING_BODY
    assert backend.calls == []

    assert session.feed(DEADBEEF) == ["200 1", b"x"]
    assert backend.calls == [("PUT", "/a.bin", DEADBEEF, "-")]
    assert session.state is State.AWAITING_REQUEST


def test_session_empty_payload():
    backend = FakeBackend()
    session = GatewaySession(backend)
    session.feed("PUT /empty")
    session.feed(b"")
    assert backend.calls == [("PUT", "/empty", b"", "-")]


def test_session_drops_wrong_frame_kinds():
    backend = FakeBackend()
    session = GatewaySession(backend)

    assert session.feed(b"stray") == []
    assert session.state is State.AWAITING_REQUEST

    session.feed("PUT /a")
    assert session.feed("GET /b") == []
    assert session.state is State.AWAITING_BODY

    session.feed(b"data")
    assert backend.calls == [("PUT", "/a", b"data", "-")]


def test_session_drops_malformed_text():
    backend = FakeBackend()
    session = GatewaySession(backend)
    assert session.feed("GARBAGE") == []
    assert backend.calls == []


def test_gateway_requires_token(settings, gateway_client):
    with pytest.raises(WebSocketDisconnect):
        with gateway_client.websocket_connect("/ws", headers={"Authorization": "Bearer wrong"}):
            pass
    with pytest.raises(WebSocketDisconnect):
        with gateway_client.websocket_connect("/ws"):
            pass


def test_gateway_refuses_empty_token(settings, container):
    with pytest.raises(ValueError):
        create_gateway_app(settings.model_copy(update={"BEARER_TOKEN": ""}), FakeBackend())


def _exchange(ws, *frames):
    for f in frames:
        if isinstance(f, str):
            ws.send_text(f)
        else:
            ws.send_bytes(f)
    return ws.receive_text(), ws.receive_bytes()


def test_gateway_upload_creates_directories_and_downloads(settings, gateway_client):
    root = settings.SANDBOX_ROOT
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        header, body = _exchange(ws, "PUT /sub/deep/file.bin", DEADBEEF)
        assert header == "201 5"
        assert body == b"ok 4\n"
        assert (root / "sub" / "deep").is_dir()

        header, body = _exchange(ws, "GET /sub/deep/file.bin")
        assert header == "200 4"
        assert body == DEADBEEF


def test_gateway_list_traversal_is_bad_request(settings, gateway_client):
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        header, body = _exchange(ws, "LIST /../../etc")
    assert header.split()[0] == "400"
    assert body == b"illegal path\n"


def test_gateway_list_and_empty_file(settings, gateway_client):
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        assert _exchange(ws, "PUT /empty.txt", b"")[0] == "201 5"
        assert _exchange(ws, "GET /empty.txt") == ("200 0", b"")
        (settings.SANDBOX_ROOT / "b").mkdir()
        header, body = _exchange(ws, "GET /_list?dir=%2F")
    assert header.startswith("200 ")
    assert json.loads(body) == ["b/", "empty.txt"]


def test_gateway_ignores_stray_binary(settings, gateway_client):
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        ws.send_bytes(b"junk")
        header, body = _exchange(ws, "LIST /")
    assert header == "200 2"
    assert body == b"[]"


def test_gateway_unknown_method(settings, gateway_client):
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        header, _ = _exchange(ws, "DELETE /x")
    assert header.split()[0] == "405"


def test_gateway_over_http_backend(settings, container):
    backend = HttpBackend(TestClient(create_backend_app(container.fs_service)))
    client = TestClient(create_gateway_app(settings, backend))
    with client.websocket_connect("/ws", headers=AUTH) as ws:
        assert _exchange(ws, "PUT /sub/deep/file.bin", DEADBEEF) == ("201 5", b"ok 4\n")
        assert _exchange(ws, "GET /sub/deep/file.bin") == ("200 4", DEADBEEF)
        assert _exchange(ws, "LIST /../../etc")[0].split()[0] == "400"
        header, body = _exchange(ws, "LIST /")
    assert json.loads(body) == ["sub/"]


def test_http_backend_unavailable_is_bad_gateway():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend = HttpBackend(httpx.Client(base_url="http://backend", transport=httpx.MockTransport(refuse)))
    session = GatewaySession(backend)
    header, body = session.feed("GET /a")
    assert header.split()[0] == "502"
    assert body.startswith(b"backend unavailable")


def test_session_null_byte_paths_get_a_reply(container):
    session = GatewaySession(LocalBackend(container.fs_service))
    assert session.feed("GET /a%00b")[0].split()[0] == "400"
    assert session.feed("LIST /a%00b")[0].split()[0] == "400"
    assert session.feed("PUT /d%00x/f") == []
    header, body = session.feed(b"x")
    assert header.split()[0] == "400"
    assert body == b"illegal path\n"


def test_gateway_null_byte_path(settings, gateway_client):
    with gateway_client.websocket_connect("/ws", headers=AUTH) as ws:
        header, body = _exchange(ws, "GET /a%00b")
        assert header.split()[0] == "400"
        # connection stays usable
        assert _exchange(ws, "LIST /") == ("200 2", b"[]")


class ClosableBackend(FakeBackend):
    closed = False

    def close(self):
        self.closed = True


def test_gateway_shutdown_closes_backend(settings):
    backend = ClosableBackend()
    with TestClient(create_gateway_app(settings, backend)):
        assert not backend.closed
    assert backend.closed


def test_http_backend_close_stops_local_server():
    class Server:
        should_exit = False

    server = Server()
    backend = HttpBackend(httpx.Client(base_url="http://backend"), server=server)
    backend.close()
    assert server.should_exit is True
