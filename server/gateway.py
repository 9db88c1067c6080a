# server/gateway.py
from __future__ import annotations

import enum
import logging
import secrets
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.protocol import Frame, ProtocolError, RequestFrame, ResponseFrame, parse_request
from server.backends import Backend

logger = logging.getLogger(__name__)


class State(enum.Enum):
    AWAITING_REQUEST = "awaiting_request"
    AWAITING_BODY = "awaiting_body"


class GatewaySession:
    """
    Per-connection translator from frames to backend calls.

    feed() takes one incoming frame and returns the frames to send back
    (nothing, or a header/body pair). A frame of the wrong kind for the
    current state is dropped without a reply.
    """

    def __init__(self, backend: Backend, client: str = "-"):
        self.backend = backend
        self.client = client
        self.state = State.AWAITING_REQUEST
        self.pending: Optional[RequestFrame] = None

    def feed(self, frame: Frame) -> List[Frame]:
        if isinstance(frame, str):
            return self._on_text(frame)
        return self._on_binary(bytes(frame))

    def _on_text(self, text: str) -> List[Frame]:
        if self.state is not State.AWAITING_REQUEST:
            logger.debug("%s: text frame while awaiting body, dropped", self.client)
            return []
        try:
            request = parse_request(text)
        except ProtocolError as e:
            logger.debug("%s: %s", self.client, e)
            return []

        if request.needs_body:
            self.pending = request
            self.state = State.AWAITING_BODY
            return []
        return self._dispatch(request)

    def _on_binary(self, data: bytes) -> List[Frame]:
        if self.state is not State.AWAITING_BODY:
            logger.debug("%s: binary frame without a pending upload, dropped", self.client)
            return []
        request = self.pending.model_copy(update={"payload": data})
        self.pending = None
        self.state = State.AWAITING_REQUEST
        return self._dispatch(request)

    def _dispatch(self, request: RequestFrame) -> List[Frame]:
        result: ResponseFrame = self.backend.call(request, self.client)
        logger.debug("%s: %s %s -> %s", self.client, request.method, request.path, result.header)
        return result.frames()


def _authorized(websocket: WebSocket, token: str) -> bool:
    auth = websocket.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return False
    return secrets.compare_digest(auth.split(" ", 1)[1].encode("utf-8"), token.encode("utf-8"))


def create_gateway_app(settings: Settings, backend: Backend) -> FastAPI:
    """
    WebSocket gateway: authenticate once at the handshake, then run one
    GatewaySession per connection until the peer goes away.
    """
    if not settings.BEARER_TOKEN:
        raise ValueError("BEARER_TOKEN must be set before the gateway is built")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        close = getattr(backend, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="wsbox gateway", version="0.1.0", docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.websocket(settings.GATEWAY_PATH)
    async def gateway(websocket: WebSocket):
        client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "-"
        if not _authorized(websocket, settings.BEARER_TOKEN):
            logger.warning("rejected unauthenticated connection from %s", client)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        logger.info("connection opened: %s", client)
        session = GatewaySession(backend, client)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                if message.get("text") is not None:
                    frame: Frame = message["text"]
                elif message.get("bytes") is not None:
                    frame = message["bytes"]
                else:
                    continue

                for out in await run_in_threadpool(session.feed, frame):
                    if isinstance(out, str):
                        await websocket.send_text(out)
                    else:
                        await websocket.send_bytes(out)
        except WebSocketDisconnect:
            pass
        finally:
            logger.info("connection closed: %s", client)

    return app
