# app/services/filesystem.py
from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Optional

from app.protocol import GET, LIST, UPLOAD_METHODS, ResponseFrame
from app.services.audit import AuditLog
from app.services.sandbox import (
    ContainmentError,
    SecurityError,
    absolute_root,
    resolve,
    secure_create_dir,
)


def _error(status: int, message: str) -> ResponseFrame:
    return ResponseFrame(status, (message + "\n").encode("utf-8"))


class FileSystemService:
    """
    Sandbox all file operations inside SANDBOX_ROOT.

    Every operation answers with a ResponseFrame; file-system errors become
    status codes and never propagate to the caller.
    """

    def __init__(self, root: Path, audit: Optional[AuditLog] = None, strict: bool = False):
        self.root = Path(absolute_root(root))
        self.root.mkdir(parents=True, exist_ok=True)
        self.audit = audit or AuditLog()
        self.strict = strict

    def _resolve_in_root(self, rel: str) -> Path:
        return resolve(rel, self.root, strict=self.strict)

    def handle(self, method: str, path: str, body: Optional[bytes] = None, client: str = "-") -> ResponseFrame:
        if method == LIST:
            return self.list_dir(path, client)
        if method == GET:
            return self.read_file(path, client)
        if method in UPLOAD_METHODS:
            return self.write_file(path, body or b"", client)
        self.audit.record(client, method, "method not allowed")
        return _error(405, "method not allowed")

    def list_dir(self, dir: str, client: str = "-") -> ResponseFrame:
        dir = dir or "/"
        try:
            real = self._resolve_in_root(dir)
        except ContainmentError as e:
            self.audit.record(client, "LIST", f"invalid path: {e}")
            return _error(400, str(e))

        try:
            st = os.stat(real)
        except FileNotFoundError:
            self.audit.record(client, "LIST", f"directory not found: {dir}")
            return _error(404, "directory not found")
        except OSError as e:
            self.audit.record(client, "LIST", f"stat failed: {e}")
            return _error(500, str(e))

        if not stat.S_ISDIR(st.st_mode):
            self.audit.record(client, "LIST", f"not a directory: {dir}")
            return _error(400, "not a directory")

        try:
            with os.scandir(real) as it:
                entries = sorted(it, key=lambda e: e.name)
                names = [e.name + "/" if e.is_dir(follow_symlinks=False) else e.name for e in entries]
        except OSError as e:
            self.audit.record(client, "LIST", f"read dir failed: {e}")
            return _error(500, str(e))

        self.audit.record(client, "LIST", f"dir={dir} count={len(names)}")
        return ResponseFrame(200, json.dumps(names).encode("utf-8"))

    def read_file(self, rel_path: str, client: str = "-") -> ResponseFrame:
        try:
            real = self._resolve_in_root(rel_path)
        except ContainmentError as e:
            self.audit.record(client, "DOWNLOAD", f"invalid path: {e}")
            return _error(400, str(e))

        try:
            st = os.stat(real)
        except OSError:
            st = None
        if st is None or not stat.S_ISREG(st.st_mode):
            self.audit.record(client, "DOWNLOAD", f"file not found: {rel_path}")
            return _error(404, "not found")

        try:
            data = real.read_bytes()
        except OSError as e:
            self.audit.record(client, "DOWNLOAD", f"read failed: {e}")
            return _error(500, str(e))

        self.audit.record(client, "DOWNLOAD", f"file: {rel_path}")
        return ResponseFrame(200, data)

    def write_file(self, rel_path: str, payload: bytes, client: str = "-") -> ResponseFrame:
        try:
            real = self._resolve_in_root(rel_path)
        except ContainmentError as e:
            self.audit.record(client, "UPLOAD", f"invalid path: {e}")
            return _error(400, str(e))

        try:
            secure_create_dir(real.parent, self.root, strict=self.strict)
        except SecurityError as e:
            self.audit.record(client, "UPLOAD", f"secure mkdir failed: {e}")
            return _error(400, str(e))

        try:
            with open(real, "wb") as f:
                n = f.write(payload)
        except OSError as e:
            self.audit.record(client, "UPLOAD", f"write failed: {e}")
            return _error(500, str(e))

        self.audit.record(client, "UPLOAD", f"file={rel_path} size={n}")
        return ResponseFrame(201, f"ok {n}\n".encode("utf-8"))
