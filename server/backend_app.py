# server/backend_app.py
from __future__ import annotations

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from app.protocol import LIST_ROUTE, ResponseFrame
from app.services.filesystem import FileSystemService
from server.backends import CLIENT_HEADER, FILE_ROUTE


def _client_of(request: Request) -> str:
    forwarded = request.headers.get(CLIENT_HEADER)
    if forwarded:
        return forwarded
    if request.client is None:
        return "-"
    return f"{request.client.host}:{request.client.port}"


def _to_response(result: ResponseFrame, media_type: str = "application/octet-stream") -> Response:
    if not result.ok:
        media_type = "text/plain; charset=utf-8"
    return Response(content=result.body, status_code=result.status, media_type=media_type)


def create_backend_app(fs_service: FileSystemService) -> FastAPI:
    """
    Local-only HTTP file server behind the gateway.
    Keep the routes thin: the file service does the checks and the logging.
    """
    app = FastAPI(title="wsbox local file server", version="0.1.0", docs_url=None, redoc_url=None)

    @app.get(LIST_ROUTE)
    def list_dir(request: Request, dir: str = "/") -> Response:
        return _to_response(fs_service.list_dir(dir, _client_of(request)), "application/json")

    @app.get(FILE_ROUTE)
    def download(request: Request, path: str) -> Response:
        return _to_response(fs_service.read_file(path, _client_of(request)))

    @app.api_route(FILE_ROUTE, methods=["PUT", "POST"])
    async def upload(request: Request, path: str) -> Response:
        payload = await request.body()
        result = await run_in_threadpool(fs_service.write_file, path, payload, _client_of(request))
        return _to_response(result, "text/plain; charset=utf-8")

    return app
