# app/config.py
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WSBOX_", env_file=".env", extra="ignore")

    # Filesystem sandbox
    SANDBOX_ROOT: Path = Path(".")
    STRICT_CONTAINMENT: bool = False        # separator-aware containment instead of string prefix

    # WebSocket gateway
    GATEWAY_HOST: str = "0.0.0.0"
    GATEWAY_PORT: int = 8080
    GATEWAY_PATH: str = "/ws"
    WS_MAX_SIZE: int = 64 * 1024 * 1024     # largest single frame, i.e. largest upload

    # Security: Bearer token (generated at startup when empty)
    BEARER_TOKEN: str = ""

    # Backend boundary: direct call, or a local-only HTTP file server
    BACKEND_MODE: Literal["inprocess", "http"] = "inprocess"
    BACKEND_HOST: str = "127.0.0.1"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Audit trail (NDJSON); logger only when unset
    AUDIT_DIR: Optional[Path] = None
    AUDIT_MAX_BYTES: int = 10_000_000

    # Client
    CLIENT_SERVER_URL: str = "ws://127.0.0.1:8080/ws"
