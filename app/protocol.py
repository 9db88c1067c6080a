# app/protocol.py
"""
Wire contract shared by the gateway and the client driver.

Request:  one text frame "METHOD PATH[ ARG]"; PUT is followed by exactly one
          binary frame carrying the whole payload.
Response: one text frame "<status> <length>" then exactly one binary frame
          of <length> bytes (an empty binary frame when length is 0).

Paths are percent-encoded on the wire so they never contain whitespace.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
from urllib.parse import parse_qs, quote, unquote

from pydantic import BaseModel, Field

LIST = "LIST"
GET = "GET"
PUT = "PUT"
UPLOAD_METHODS = ("PUT", "POST")
LIST_ROUTE = "/_list"

Frame = Union[str, bytes]


class ProtocolError(ValueError):
    pass


class RequestFrame(BaseModel):
    method: str = Field(..., description="LIST, GET, PUT or any other token (answered with 405)")
    path: str = Field(..., description="Decoded logical path")
    inline_body: Optional[str] = Field(None, description="Optional third text field, non-PUT only")
    payload: Optional[bytes] = Field(None, description="Binary payload, PUT only")

    @property
    def needs_body(self) -> bool:
        return self.method == PUT


@dataclass
class ResponseFrame:
    status: int
    body: bytes = b""

    @property
    def header(self) -> str:
        return f"{self.status} {len(self.body)}"

    def frames(self) -> List[Frame]:
        return [self.header, self.body]

    @property
    def ok(self) -> bool:
        return self.status < 400

    def text(self) -> str:
        return self.body.decode("utf-8", "replace").strip()


def quote_path(path: str) -> str:
    return quote(path, safe="/")


def encode_request(method: str, path: str, arg: Optional[str] = None) -> str:
    line = f"{method} {quote_path(path)}"
    if arg is not None:
        line += " " + arg
    return line


def parse_request(text: str) -> RequestFrame:
    """
    Split a request line into at most three whitespace-separated fields.

    "GET /_list?dir=..." is the legacy spelling of "LIST <dir>"; POST is an
    alias of PUT. Any other method passes through untouched.
    """
    parts = text.split(None, 2)
    if len(parts) < 2:
        raise ProtocolError(f"malformed request: {text!r}")

    method, target = parts[0], parts[1]
    inline = parts[2] if len(parts) == 3 else None
    raw_path, _, query = target.partition("?")

    if method == GET and raw_path == LIST_ROUTE:
        dirs = parse_qs(query).get("dir")
        return RequestFrame(method=LIST, path=dirs[0] if dirs else "/", inline_body=inline)

    if method in UPLOAD_METHODS:
        # the binary frame that follows is the only body a PUT has
        return RequestFrame(method=PUT, path=unquote(raw_path))

    return RequestFrame(method=method, path=unquote(raw_path), inline_body=inline)


def parse_header(text: str) -> Tuple[int, int]:
    parts = text.split()
    if len(parts) != 2:
        raise ProtocolError(f"bad header: {text}")
    try:
        status, length = int(parts[0]), int(parts[1])
    except ValueError:
        raise ProtocolError(f"bad header: {text}")
    if length < 0:
        raise ProtocolError(f"bad header: {text}")
    return status, length
