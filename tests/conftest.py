# tests/conftest.py
from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.di import build_container
from server.backends import LocalBackend
from server.gateway import create_gateway_app

TOKEN = "secret"


class RecordingAudit:
    def __init__(self):
        self.records: List[tuple] = []

    def record(self, client, action, event):
        self.records.append((client, action, event))
        return {"client": client, "action": action, "event": event}


class SessionConnection:
    """Give a TestClient websocket session the send/recv shape of a websockets connection."""

    def __init__(self, session):
        self.session = session

    def __enter__(self):
        self.session.__enter__()
        return self

    def __exit__(self, *exc):
        return self.session.__exit__(*exc)

    def send(self, message):
        if isinstance(message, str):
            self.session.send_text(message)
        else:
            self.session.send_bytes(message)

    def recv(self):
        message = self.session.receive()
        if message.get("text") is not None:
            return message["text"]
        return message["bytes"]


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(SANDBOX_ROOT=tmp_path / "files", BEARER_TOKEN=TOKEN)


@pytest.fixture
def container(settings):
    return build_container(settings)


@pytest.fixture
def gateway_client(settings, container) -> TestClient:
    app = create_gateway_app(settings, LocalBackend(container.fs_service))
    return TestClient(app)


@pytest.fixture
def connect(gateway_client):
    def _connect(url, headers):
        return SessionConnection(gateway_client.websocket_connect("/ws", headers=headers))
    return _connect
