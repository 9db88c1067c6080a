# server/backends.py
from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
import uvicorn

from app.protocol import LIST, LIST_ROUTE, RequestFrame, ResponseFrame
from app.services.filesystem import FileSystemService

logger = logging.getLogger(__name__)

FILE_ROUTE = "/_file"
CLIENT_HEADER = "X-Forwarded-For"


class Backend(Protocol):
    def call(self, frame: RequestFrame, client: str) -> ResponseFrame: ...


class LocalBackend:
    """
    Direct in-process call into the file service.
    """

    def __init__(self, fs_service: FileSystemService):
        self.fs = fs_service

    def call(self, frame: RequestFrame, client: str) -> ResponseFrame:
        body = frame.payload
        if body is None and frame.inline_body is not None:
            body = frame.inline_body.encode("utf-8")
        return self.fs.handle(frame.method, frame.path, body, client)


class HttpBackend:
    """
    Forward each frame as one HTTP request to the local-only file server
    (server/backend_app.py). Paths travel as query parameters so the HTTP
    client never normalizes "." or ".." segments on the way.
    """

    def __init__(self, client: httpx.Client, server: Optional[uvicorn.Server] = None):
        self.client = client
        self.server = server

    def call(self, frame: RequestFrame, client: str) -> ResponseFrame:
        headers = {CLIENT_HEADER: client}
        if frame.method == LIST:
            method, url, params = "GET", LIST_ROUTE, {"dir": frame.path}
        else:
            method, url, params = frame.method, FILE_ROUTE, {"path": frame.path}

        content = frame.payload
        if content is None and frame.inline_body is not None:
            content = frame.inline_body.encode("utf-8")

        try:
            resp = self.client.request(method, url, params=params, content=content, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("backend request %s %s failed: %s", method, frame.path, e)
            return ResponseFrame(502, f"backend unavailable: {e}\n".encode("utf-8"))
        return ResponseFrame(resp.status_code, resp.content)

    def close(self):
        self.client.close()
        if self.server is not None:
            self.server.should_exit = True
