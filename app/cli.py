# app/cli.py
"""
wsbox [command] [flags]

Commands:
  server    serve a sandbox directory over a WebSocket gateway
  client    talk to a running server
  help      show this help

Examples:
  wsbox server --addr :8080 --dir ./files --token mysecret
  wsbox client -s ws://mysecret@server:8080/ws list
  wsbox client -s ws://mysecret@server:8080/ws add file.txt uploads/file.txt
  wsbox client -s ws://mysecret@server:8080/ws get uploads/file.txt copy.txt
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from websockets.exceptions import WebSocketException

from app.config import Settings
from app.logging import configure_logging
from app.protocol import ProtocolError
from client.driver import ClientDriver, RemoteError
from client.tree import render_tree

HELP = __doc__.strip() + "\n"


def parse_addr(addr: str, default_host: str = "0.0.0.0") -> Tuple[str, int]:
    host, _, port = addr.rpartition(":")
    if not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid address: {addr}")
    return host or default_host, int(port)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wsbox", add_help=False)
    sub = parser.add_subparsers(dest="command")

    srv = sub.add_parser("server", help="run the gateway")
    srv.add_argument("--addr", default=f"{settings.GATEWAY_HOST}:{settings.GATEWAY_PORT}",
                     type=parse_addr, help="gateway listen address (host:port or :port)")
    srv.add_argument("--dir", default=str(settings.SANDBOX_ROOT), help="sandbox directory")
    srv.add_argument("--token", default=settings.BEARER_TOKEN, help="fixed token (generated if empty)")
    srv.add_argument("--backend", choices=["inprocess", "http"], default=settings.BACKEND_MODE,
                     help="how the gateway reaches the file service")

    cli = sub.add_parser("client", help="run a file operation")
    cli.add_argument("-s", "--server", default=settings.CLIENT_SERVER_URL, help="websocket server URL")
    cli.add_argument("op", choices=["list", "add", "get", "help"])
    cli.add_argument("args", nargs="*")

    sub.add_parser("help")
    return parser


def run_server(args: argparse.Namespace, settings: Settings) -> int:
    from server.main import serve

    host, port = args.addr
    serve(settings.model_copy(update={
        "GATEWAY_HOST": host,
        "GATEWAY_PORT": port,
        "SANDBOX_ROOT": Path(args.dir),
        "BEARER_TOKEN": args.token,
        "BACKEND_MODE": args.backend,
    }))
    return 0


def run_client(args: argparse.Namespace) -> int:
    if args.op == "help":
        print(HELP, end="")
        return 0

    driver = ClientDriver(args.server)
    try:
        if args.op == "list":
            target = args.args[0] if args.args else "/"
            print(render_tree(driver.list(target), target))
        elif args.op == "add":
            if not args.args:
                print("missing local-file", file=sys.stderr)
                return 1
            remote = args.args[1] if len(args.args) > 1 else None
            print("upload done:", driver.add(args.args[0], remote))
        elif args.op == "get":
            if not args.args:
                print("missing remote-file", file=sys.stderr)
                return 1
            local = args.args[1] if len(args.args) > 1 else None
            print("download done ->", driver.get(args.args[0], local))
    except RemoteError as e:
        print("remote error:", e.message, file=sys.stderr)
        return 1
    except (ProtocolError, WebSocketException, OSError) as e:
        print(e, file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    parser = build_parser(settings)
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        print(HELP, end="")
        return 1

    if args.command == "help":
        print(HELP, end="")
        return 0
    if args.command == "server":
        return run_server(args, settings)
    if args.command == "client":
        configure_logging(settings.LOG_LEVEL)
        return run_client(args)
    print(HELP, end="")
    return 1


if __name__ == "__main__":
    sys.exit(main())
