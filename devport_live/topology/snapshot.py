from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..config import WATCHED_FIELDS
from ..models import PortKey, PortRecord

SnapshotMap = Dict[PortKey, PortRecord]


def build_snapshot(records: Iterable[PortRecord]) -> SnapshotMap:
    # the same (port, protocol, pid) may be listed once per address family; last one wins
    return {r.key: r for r in records}


def has_changed(old: PortRecord, new: PortRecord) -> bool:
    return any(getattr(old, f) != getattr(new, f) for f in WATCHED_FIELDS)


@dataclass
class SnapshotDiff:
    removed: List[PortRecord] = field(default_factory=list)
    added: List[PortRecord] = field(default_factory=list)
    updated: List[PortRecord] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.removed or self.added or self.updated)


def diff_snapshots(old: SnapshotMap, new: SnapshotMap) -> SnapshotDiff:
    """Compare two keyed snapshots; neither input is modified."""
    diff = SnapshotDiff()
    for key, rec in old.items():
        if key not in new:
            diff.removed.append(rec)
    for key, rec in new.items():
        prev = old.get(key)
        if prev is None:
            diff.added.append(rec)
        elif has_changed(prev, rec):
            diff.updated.append(rec)
    return diff


class Snapshot:
    """Most recent observation retained between monitor cycles."""

    def __init__(self):
        self.lock = threading.Lock()
        self.records: SnapshotMap = {}

    def replace(self, new: SnapshotMap) -> SnapshotDiff:
        with self.lock:
            diff = diff_snapshots(self.records, new)
            self.records = new
        return diff

    def values(self) -> List[PortRecord]:
        with self.lock:
            return list(self.records.values())

    def clear(self) -> None:
        with self.lock:
            self.records = {}
