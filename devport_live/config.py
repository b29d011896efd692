from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

@dataclass
class CFG:
    host: str = "127.0.0.1"
    port: int = 8765
    interval: float = 5.0
    cache_ttl: float = 3.0
    command_timeout: Optional[float] = None
    rules_path: Optional[str] = None
    monitor: bool = True
    log_level: str = "INFO"

# Scanning is restricted to registered/ephemeral ports; well-known ports are
# only reachable through open_in_browser.
SCAN_RANGE: Tuple[int, int] = (1024, 65535)
DEV_RANGE: Tuple[int, int] = (3000, 9999)

HTTPS_PORTS = frozenset({443, 8443, 9443})

# fields compared between snapshots to decide whether a record was updated
WATCHED_FIELDS = ("state", "name", "cmd", "local_address", "remote_address")

PLATFORM_NAMES = {
    "Darwin": "macOS",
    "Windows": "Windows",
    "Linux": "Linux",
}

def init_cfg_from_args(args) -> CFG:
    cfg = CFG()
    cfg.host = args.host
    cfg.port = int(args.port)
    cfg.interval = max(0.1, float(args.interval))
    cfg.cache_ttl = max(0.0, float(args.cache_ttl))
    if getattr(args, "command_timeout", None):
        cfg.command_timeout = float(args.command_timeout)
    cfg.rules_path = getattr(args, "rules", None)
    cfg.monitor = not bool(getattr(args, "no_monitor", False))
    cfg.log_level = str(getattr(args, "log_level", "INFO")).upper()
    return cfg
