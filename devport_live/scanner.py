from __future__ import annotations
import errno
import logging
import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .collectors import Collector, get_collector, run_command
from .config import DEV_RANGE, SCAN_RANGE
from .errors import (
    CommandFailedError,
    CommandNotFoundError,
    CommandTerminatedError,
    PermissionDeniedError,
    PortScanError,
    UnknownScanError,
    ValidationError,
)
from .models import PortRecord
from .rules import DEFAULT_RULES, FrameworkRule, detect_framework
from .utils.net import valid_port

logger = logging.getLogger(__name__)

CacheKey = Tuple[int, int]


class PortScanner:
    """Runs the collector's listing command, filters by port range and caches per range."""

    def __init__(
        self,
        collector: Optional[Collector] = None,
        cache_ttl: float = 3.0,
        rules: Optional[List[FrameworkRule]] = None,
        runner: Callable[..., subprocess.CompletedProcess] = run_command,
        clock: Callable[[], float] = time.monotonic,
        command_timeout: Optional[float] = None,
    ):
        self.collector = collector or get_collector()
        self.cache_ttl = cache_ttl
        self.rules = list(DEFAULT_RULES) if rules is None else rules
        self.runner = runner
        self.clock = clock
        self.command_timeout = command_timeout
        self._cache: Dict[CacheKey, Tuple[List[PortRecord], float]] = {}
        self._cache_lock = threading.Lock()

    # -- public API --------------------------------------------------------

    def scan(self, start: int = SCAN_RANGE[0], end: int = SCAN_RANGE[1]) -> List[PortRecord]:
        self._validate_range(start, end)
        key = (start, end)
        cached = self._from_cache(key)
        if cached is not None:
            return cached
        records = [r for r in self._collect(start, end) if start <= r.port <= end]
        for r in records:
            r.framework = detect_framework(r, self.rules)
        with self._cache_lock:
            self._cache[key] = (records, self.clock())
        logger.debug("scanned %d-%d: %d records", start, end, len(records))
        return list(records)

    def scan_dev_range(self) -> List[PortRecord]:
        return self.scan(*DEV_RANGE)

    def lookup(self, port: int) -> Optional[PortRecord]:
        """Owner of port right now; always runs the command, never reads the cache."""
        if not valid_port(port, *SCAN_RANGE):
            raise ValidationError(f"Port must be an integer between {SCAN_RANGE[0]} and {SCAN_RANGE[1]}")
        for r in self._collect():
            if r.port == port:
                r.framework = detect_framework(r, self.rules)
                return r
        return None

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    # -- internals ---------------------------------------------------------

    @staticmethod
    def _validate_range(start: int, end: int) -> None:
        low, high = SCAN_RANGE
        for p in (start, end):
            if not isinstance(p, int) or isinstance(p, bool):
                raise ValidationError("Port numbers must be integers")
        if not low <= start <= high:
            raise ValidationError(f"Start port must be between {low} and {high}")
        if not low <= end <= high:
            raise ValidationError(f"End port must be between {low} and {high}")
        if start > end:
            raise ValidationError("Start port must be less than or equal to end port")

    def _from_cache(self, key: CacheKey) -> Optional[List[PortRecord]]:
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            records, captured_at = entry
            if self.clock() - captured_at > self.cache_ttl:
                del self._cache[key]
                return None
            return list(records)

    def _collect(self, start: Optional[int] = None, end: Optional[int] = None) -> List[PortRecord]:
        argv = self.collector.build_command(start, end)
        try:
            res = self.runner(argv, timeout=self.command_timeout)
        except Exception as e:
            raise self._classify(e, argv) from e
        if res.returncode < 0:
            raise CommandTerminatedError(
                f"Command execution was terminated (signal: {-res.returncode})", signal=-res.returncode)
        if res.returncode not in self.collector.ok_returncodes:
            stderr = (res.stderr or "").strip()
            raise CommandFailedError(
                f"Command failed: {stderr or f'{argv[0]} exited with {res.returncode}'}",
                returncode=res.returncode, stderr=stderr)
        try:
            return self.collector.parse_output(res.stdout or "")
        except Exception as e:
            raise UnknownScanError(f"Port scanning failed: {str(e) or e.__class__.__name__}") from e

    def _classify(self, e: Exception, argv: List[str]) -> PortScanError:
        if isinstance(e, FileNotFoundError) or getattr(e, "errno", None) == errno.ENOENT:
            self.collector.on_command_missing()
            return CommandNotFoundError(
                f"Required system command not found: {argv[0]} (platform: {self.collector.name})")
        if isinstance(e, PermissionError) or getattr(e, "errno", None) in (errno.EACCES, errno.EPERM):
            return PermissionDeniedError("Permission denied. Try running with elevated permissions.")
        if isinstance(e, subprocess.TimeoutExpired):
            return CommandTerminatedError(f"Command execution was terminated (timeout after {e.timeout}s)")
        if isinstance(e, subprocess.CalledProcessError):
            if e.returncode < 0:
                return CommandTerminatedError(
                    f"Command execution was terminated (signal: {-e.returncode})", signal=-e.returncode)
            stderr = e.stderr if isinstance(e.stderr, str) else ""
            return CommandFailedError(f"Command failed: {stderr.strip() or e}", returncode=e.returncode, stderr=stderr)
        return UnknownScanError(f"Port scanning failed: {str(e) or e.__class__.__name__}")
