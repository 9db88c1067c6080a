# server/main.py
from __future__ import annotations

import logging
import secrets
import socket
import threading
import time
from typing import Optional, Tuple

import httpx
import uvicorn
from fastapi import FastAPI

from app.config import Settings
from app.di import Container, build_container
from app.logging import configure_logging
from server.backend_app import create_backend_app
from server.backends import Backend, HttpBackend, LocalBackend
from server.gateway import create_gateway_app

logger = logging.getLogger(__name__)


def generate_token() -> str:
    return secrets.token_hex(16)


def start_local_backend(container: Container) -> Tuple[str, uvicorn.Server]:
    """
    Serve the file service over HTTP on an ephemeral loopback port in a
    background thread. Returns the base URL once the server is accepting.
    """
    app = create_backend_app(container.fs_service)
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((container.settings.BACKEND_HOST, 0))
    host, port = sock.getsockname()[:2]

    config = uvicorn.Config(app, lifespan="off", log_level=container.settings.LOG_LEVEL.lower())
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, kwargs={"sockets": [sock]}, name="wsbox-backend", daemon=True)
    thread.start()
    while not server.started:
        if not thread.is_alive():
            raise RuntimeError("local file server failed to start")
        time.sleep(0.01)

    url = f"http://{host}:{port}"
    logger.info("local file server @ %s", url)
    return url, server


def build_backend(container: Container) -> Backend:
    if container.settings.BACKEND_MODE == "http":
        url, server = start_local_backend(container)
        return HttpBackend(httpx.Client(base_url=url, timeout=None), server=server)
    return LocalBackend(container.fs_service)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the container and the backend, then the gateway on top.
    Keep the gateway (protocol) separate from the file service.
    """
    settings = settings or Settings()
    if not settings.BEARER_TOKEN:
        settings = settings.model_copy(update={"BEARER_TOKEN": generate_token()})
    container = build_container(settings)
    return create_gateway_app(settings, build_backend(container))


def serve(settings: Settings) -> None:
    configure_logging(settings.LOG_LEVEL)
    if not settings.BEARER_TOKEN:
        settings = settings.model_copy(update={"BEARER_TOKEN": generate_token()})

    print("=== wsbox ===")
    print(f"sandbox: {settings.SANDBOX_ROOT}")
    print(f"fixed token: {settings.BEARER_TOKEN}")

    app = create_app(settings)
    logger.info("gateway websocket @ %s:%d%s", settings.GATEWAY_HOST, settings.GATEWAY_PORT, settings.GATEWAY_PATH)
    uvicorn.run(
        app,
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        ws_max_size=settings.WS_MAX_SIZE,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    serve(Settings())
