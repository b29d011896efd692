from __future__ import annotations
from typing import Optional
from ..config import HTTPS_PORTS

def browser_protocol(port: int, requested: Optional[str] = None) -> str:
    if requested:
        return requested.lower()
    # most dev servers speak plain http; only the usual TLS ports get https
    return "https" if port in HTTPS_PORTS else "http"

def local_url(port: int, protocol: Optional[str] = None) -> str:
    return f"{browser_protocol(port, protocol)}://localhost:{port}"
