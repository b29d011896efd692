from .snapshot import Snapshot, SnapshotDiff, build_snapshot, diff_snapshots
from .heuristics import browser_protocol, local_url
