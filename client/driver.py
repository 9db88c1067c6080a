# client/driver.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

from websockets.sync.client import connect as ws_connect

from app.logging import redact_url
from app.protocol import (
    GET,
    LIST,
    PUT,
    Frame,
    ProtocolError,
    ResponseFrame,
    encode_request,
    parse_header,
)

logger = logging.getLogger(__name__)

Connect = Callable[[str, Dict[str, str]], object]


class RemoteError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status} {message}")
        self.status = status
        self.message = message


def parse_server_url(url: str) -> Tuple[str, Dict[str, str]]:
    """
    ws://TOKEN@host:port/ws -> (ws://host:port/ws, {"Authorization": "Bearer TOKEN"})
    """
    parts = urlsplit(url)
    headers: Dict[str, str] = {}
    if parts.username:
        headers["Authorization"] = f"Bearer {unquote(parts.username)}"
        host = parts.netloc.rsplit("@", 1)[1]
        url = urlunsplit(parts._replace(netloc=host))
    return url, headers


def _default_connect(url: str, headers: Dict[str, str]):
    return ws_connect(url, additional_headers=headers, max_size=None)


def _remote_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


class ClientDriver:
    """
    Client side of the wire contract. Every call opens its own connection,
    sends one request and reads exactly one header/body pair.
    """

    def __init__(self, server_url: str, connect: Optional[Connect] = None):
        self.url, self.headers = parse_server_url(server_url)
        self._connect = connect or _default_connect
        self._display_url = redact_url(server_url)

    def _exchange(self, *frames: Frame) -> ResponseFrame:
        logger.debug("dial %s", self._display_url)
        with self._connect(self.url, self.headers) as conn:
            for frame in frames:
                conn.send(frame)

            header = conn.recv()
            if not isinstance(header, str):
                raise ProtocolError("expected a text header frame")
            status, length = parse_header(header)

            # the body is read on errors too: no frame may stay unread
            body = conn.recv()
            if isinstance(body, str):
                raise ProtocolError("expected a binary body frame")
            if len(body) != length:
                raise ProtocolError(f"body length {len(body)} does not match header {length}")

        resp = ResponseFrame(status, bytes(body))
        if not resp.ok:
            raise RemoteError(status, resp.text())
        return resp

    def list(self, dir: str = "/") -> List[str]:
        resp = self._exchange(encode_request(LIST, dir))
        try:
            names = json.loads(resp.body)
        except ValueError as e:
            raise ProtocolError(f"bad listing: {e}")
        return names or []

    def add(self, local_file: os.PathLike, remote_path: Optional[str] = None) -> str:
        local = Path(local_file)
        if local.is_dir():
            raise IsADirectoryError("directory upload not implemented")
        data = local.read_bytes()

        remote = _remote_path(remote_path or local.name)
        resp = self._exchange(encode_request(PUT, remote), data)
        return resp.text()

    def get(self, remote_path: str, local_file: Optional[os.PathLike] = None) -> Path:
        remote = _remote_path(remote_path)
        resp = self._exchange(encode_request(GET, remote))

        local = Path(local_file) if local_file else Path(os.path.basename(remote.rstrip("/")))
        local.write_bytes(resp.body)
        return local
