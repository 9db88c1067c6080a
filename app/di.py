# app/di.py
from dataclasses import dataclass
from typing import Optional

from app.config import Settings
from app.services.audit import AuditLog
from app.services.filesystem import FileSystemService


@dataclass
class Container:
    settings: Settings
    audit: AuditLog
    fs_service: FileSystemService


def build_container(settings: Optional[Settings] = None) -> Container:
    s = settings or Settings()
    audit = AuditLog(directory=s.AUDIT_DIR, max_bytes=s.AUDIT_MAX_BYTES)
    fs = FileSystemService(s.SANDBOX_ROOT, audit=audit, strict=s.STRICT_CONTAINMENT)
    return Container(s, audit, fs)
