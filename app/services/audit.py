# app/services/audit.py
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.logging import redact_str

logger = logging.getLogger("wsbox.audit")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass
class AuditLog:
    """
    One record per file operation outcome: who, what, and a short event text.

    Records always go to the "wsbox.audit" logger. When a directory is given
    they are also appended as NDJSON to <directory>/audit-NNNN.ndjson,
    rotating to the next index once the current file reaches max_bytes.
    """
    directory: Optional[Path] = None
    max_bytes: int = 10_000_000
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        if self.directory is not None:
            self.directory = Path(self.directory).resolve()
            self.directory.mkdir(parents=True, exist_ok=True)

    def record(self, client: str, action: str, event: str) -> Dict[str, Any]:
        event = redact_str(event)
        logger.info("[%s][%s][%s]", client, action, event)

        entry = {"ts": _iso_now(), "client": client, "action": action, "event": event}
        if self.directory is None:
            return entry

        with self._lock:
            path = self._current_file()
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        return entry

    def files(self) -> List[Path]:
        if self.directory is None:
            return []
        return sorted(self.directory.glob("audit-*.ndjson"))

    def _current_file(self) -> Path:
        existing = self.files()
        if not existing:
            return self.directory / "audit-0001.ndjson"

        current = existing[-1]
        try:
            sz = current.stat().st_size
        except FileNotFoundError:
            return current

        if sz >= self.max_bytes:
            idx = int(current.stem.split("-")[-1])
            return self.directory / f"audit-{idx + 1:04d}.ndjson"
        return current
