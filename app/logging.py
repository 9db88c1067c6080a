# app/logging.py
import logging
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
USERINFO_RE = re.compile(r"(\w+://)[^/@\s]+@")


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_str(s: str) -> str:
    s = BEARER_RE.sub(r"\1[redacted]", s)
    return USERINFO_RE.sub(r"\1[redacted]@", s)


def redact_url(url: str) -> str:
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"[redacted]@{host}"))
