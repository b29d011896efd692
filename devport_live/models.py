from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Tuple

STATE_UNKNOWN = "UNKNOWN"
PROTOCOLS = ("TCP", "UDP")

PortKey = Tuple[int, str, int]  # (port, protocol, pid)

@dataclass
class FrameworkInfo:
    name: str
    display_name: str
    icon: str = ""
    color: str = ""

@dataclass
class PortRecord:
    port: int
    protocol: str          # 'TCP' | 'UDP'
    pid: int
    name: str = ""
    cmd: str = ""
    state: str = STATE_UNKNOWN  # 'LISTEN', 'ESTABLISHED', 'UNCONN', ...
    local_address: str = ""
    remote_address: Optional[str] = None
    framework: Optional[FrameworkInfo] = None

    @property
    def key(self) -> PortKey:
        return (self.port, self.protocol, self.pid)

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class ActionResult:
    success: bool
    message: str
    reason: Optional[str] = None  # 'not_found', 'elevation_required', ...
    error: Optional[BaseException] = None

    def to_dict(self) -> dict:
        d = {"success": self.success, "message": self.message, "reason": self.reason}
        if self.error is not None:
            d["error"] = f"{self.error.__class__.__name__}: {self.error}"
        return d
