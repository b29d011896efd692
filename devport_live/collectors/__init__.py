from __future__ import annotations
import platform
import threading
from typing import Optional

from ..config import PLATFORM_NAMES
from ..errors import UnsupportedPlatformError
from .base import Collector, run_command
from .linux import LinuxCollector
from .macos import MacOSCollector
from .windows import WindowsCollector
from .loop import ProcessMonitor

COLLECTORS = {
    "Darwin": MacOSCollector,
    "Windows": WindowsCollector,
    "Linux": LinuxCollector,
}

_instance: Optional[Collector] = None
_instance_lock = threading.Lock()


def get_collector() -> Collector:
    """The collector for this OS, created once per process (Linux probes for lsof on creation)."""
    global _instance
    with _instance_lock:
        if _instance is None:
            system = platform.system()
            cls = COLLECTORS.get(system)
            if cls is None:
                raise UnsupportedPlatformError(f"Unsupported platform: {system or '?'}")
            _instance = cls()
        return _instance


def reset_collector() -> None:
    global _instance
    with _instance_lock:
        _instance = None


def platform_name() -> str:
    system = platform.system()
    return PLATFORM_NAMES.get(system, system)


__all__ = [
    "Collector", "LinuxCollector", "MacOSCollector", "WindowsCollector",
    "ProcessMonitor", "get_collector", "reset_collector", "platform_name", "run_command",
]
