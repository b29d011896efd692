from __future__ import annotations
import logging
import re
import shutil
from typing import List, Optional

from ..models import PortRecord, PROTOCOLS
from ..utils.net import port_of, remote_or_none
from .base import Collector, Runner, run_command
from .macos import LSOF_COMMAND, parse_lsof_output

logger = logging.getLogger(__name__)

SS_COMMAND = ["ss", "-tulnp"]

# users:(("node",pid=1234,fd=21),("node",pid=1235,fd=21))
SS_PROC_RE = re.compile(r"\(\(\"(?P<name>[^\"]*)\",pid=(?P<pid>\d+)")


def parse_ss_line(line: str) -> Optional[PortRecord]:
    # Netid  State  Recv-Q  Send-Q  Local Address:Port  Peer Address:Port  Process
    parts = line.split()
    if len(parts) < 6:
        return None
    protocol = parts[0].upper()
    if protocol not in PROTOCOLS:
        return None
    local = parts[4]
    port = port_of(local)
    if not port:
        return None
    if len(parts) < 7:
        return None  # no process column: socket owned by another user
    m = SS_PROC_RE.search(" ".join(parts[6:]))
    if not m:
        return None
    pid = int(m.group("pid"))
    if pid <= 0:
        return None
    return PortRecord(
        port=port,
        protocol=protocol,
        pid=pid,
        name=m.group("name"),
        state=parts[1],
        local_address=local,
        remote_address=remote_or_none(parts[5]),
    )


def parse_ss_output(output: str) -> List[PortRecord]:
    records: List[PortRecord] = []
    for line in output.splitlines()[1:]:  # header
        line = line.strip()
        if not line:
            continue
        rec = parse_ss_line(line)
        if rec is not None:
            records.append(rec)
    return records


class LinuxCollector(Collector):
    """lsof when installed, ss otherwise. The choice is probed once per instance."""

    name = "Linux"

    def __init__(self, runner: Runner = run_command, use_lsof: Optional[bool] = None):
        super().__init__(runner)
        self.use_lsof = self._probe() if use_lsof is None else use_lsof

    @staticmethod
    def _probe() -> bool:
        return shutil.which("lsof") is not None

    @property
    def ok_returncodes(self):
        # lsof exits 1 when it finds no matching files
        return frozenset({0, 1}) if self.use_lsof else frozenset({0})

    def build_command(self, start: Optional[int] = None, end: Optional[int] = None) -> List[str]:
        return list(LSOF_COMMAND if self.use_lsof else SS_COMMAND)

    def parse_records(self, output: str) -> List[PortRecord]:
        if self.use_lsof:
            return parse_lsof_output(output)
        return parse_ss_output(output)

    def on_command_missing(self) -> None:
        was = "lsof" if self.use_lsof else "ss"
        self.use_lsof = self._probe()
        logger.warning("%s is not available; next scan uses %s", was, "lsof" if self.use_lsof else "ss")
