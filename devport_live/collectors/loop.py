from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

from ..errors import PortScanError
from ..models import PortRecord
from ..topology.snapshot import Snapshot, SnapshotDiff, build_snapshot

if TYPE_CHECKING:
    from ..scanner import PortScanner

logger = logging.getLogger(__name__)

Callback = Callable[[PortRecord], None]


@dataclass(eq=False)
class Subscriber:
    on_added: Optional[Callback] = None
    on_removed: Optional[Callback] = None
    on_updated: Optional[Callback] = None


class ProcessMonitor:
    """Polls the dev port range on a background thread and publishes what changed.

    Each cycle scans, diffs the new keyed snapshot against the retained one,
    replaces it and then notifies subscribers: removals first, then additions
    and updates. A cycle whose scan finishes after stop() is discarded.

    Applying a scan result (token check, snapshot replace, publish) happens
    under _apply_lock, which stop() also takes, so once stop() returns no
    further result is applied or published.
    """

    def __init__(self, scanner: "PortScanner"):
        self.scanner = scanner
        self.snapshot = Snapshot()
        self.interval = 5.0
        self._lock = threading.Lock()
        # reentrant: a subscriber may call stop() from inside a publish
        self._apply_lock = threading.RLock()
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._subscribers: List[Subscriber] = []

    # -- lifecycle ---------------------------------------------------------

    def start(self, interval: float = 5.0) -> List[PortRecord]:
        if not interval > 0:
            raise ValueError(f"interval must be a positive number of seconds, got {interval!r}")
        with self._lock:
            if self._stop is not None:
                logger.warning("ProcessMonitor is already running")
                return self.snapshot.values()
            stop = threading.Event()
            self._stop = stop
            self.interval = interval
        try:
            self.tick(stop)
        except Exception:
            with self._lock:
                if self._stop is stop:
                    self._stop = None
            raise
        t = threading.Thread(target=self._run, args=(stop, interval), name="devport-monitor", daemon=True)
        with self._lock:
            if self._stop is stop:
                self._thread = t
        t.start()
        logger.info("ProcessMonitor started with interval: %.2fs", interval)
        return self.snapshot.values()

    def stop(self) -> None:
        with self._lock:
            stop = self._stop
            if stop is None:
                logger.warning("ProcessMonitor is not running")
                return
            self._stop = None
            self._thread = None
        with self._apply_lock:
            stop.set()
        logger.info("ProcessMonitor stopped")

    def cleanup(self) -> None:
        if self.is_active():
            self.stop()
        with self._apply_lock:
            self.snapshot.clear()
        with self._lock:
            self._subscribers.clear()

    def is_active(self) -> bool:
        with self._lock:
            return self._stop is not None

    def get_current_ports(self) -> List[PortRecord]:
        return self.snapshot.values()

    # -- polling -----------------------------------------------------------

    def _run(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            try:
                self.tick(stop)
            except PortScanError as e:
                logger.error("Port scan failed: %s", e)
            except Exception:
                logger.exception("Error during port scan")

    def tick(self, stop: Optional[threading.Event] = None) -> SnapshotDiff:
        """Run one scan/diff/publish cycle. The ticker thread calls this every interval."""
        new = build_snapshot(self.scanner.scan_dev_range())
        with self._apply_lock:
            if stop is not None and stop.is_set():
                logger.debug("discarding scan that completed after stop()")
                return SnapshotDiff()
            diff = self.snapshot.replace(new)
            if diff:
                logger.debug("ports changed: -%d +%d ~%d", len(diff.removed), len(diff.added), len(diff.updated))
                self._publish(diff)
        return diff

    # -- events ------------------------------------------------------------

    def subscribe(
        self,
        on_added: Optional[Callback] = None,
        on_removed: Optional[Callback] = None,
        on_updated: Optional[Callback] = None,
    ) -> Callable[[], None]:
        sub = Subscriber(on_added, on_removed, on_updated)
        with self._lock:
            self._subscribers.append(sub)

        def unsubscribe() -> None:
            with self._lock:
                if sub in self._subscribers:
                    self._subscribers.remove(sub)

        return unsubscribe

    def _publish(self, diff: SnapshotDiff) -> None:
        with self._lock:
            subs = list(self._subscribers)
        for attr, records in (("on_removed", diff.removed), ("on_added", diff.added), ("on_updated", diff.updated)):
            for rec in records:
                for sub in subs:
                    cb = getattr(sub, attr)
                    if cb is None:
                        continue
                    try:
                        cb(rec)
                    except Exception:
                        logger.exception("subscriber %s failed for port %s", attr, rec.port)
