from __future__ import annotations
import re
from typing import Optional

PORT_SUFFIX_RE = re.compile(r":(\d+)$")

# peers printed by ss/netstat when a socket has no remote end
EMPTY_PEERS = {"*", "*:*", "0.0.0.0:*", "0.0.0.0:0", "[::]:*", "[::]:0", ":::*"}

def _safe_int(s: str, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(s)
    except (TypeError, ValueError):
        return default

def port_of(addr: str) -> Optional[int]:
    """
    Trailing port of an address token:
      - '1.2.3.4:5678' -> 5678
      - '[::1]:443'    -> 443
      - '*:*', '*'     -> None
      - '*:0', '*:70000' -> None (outside 1-65535)
    """
    if not addr:
        return None
    m = PORT_SUFFIX_RE.search(addr)
    if not m:
        return None
    port = _safe_int(m.group(1))
    return port if valid_port(port) else None

def remote_or_none(addr: Optional[str]) -> Optional[str]:
    if not addr or addr in EMPTY_PEERS or addr.endswith(':*'):
        return None
    return addr

def valid_port(port: object, low: int = 1, high: int = 65535) -> bool:
    return isinstance(port, int) and not isinstance(port, bool) and low <= port <= high
