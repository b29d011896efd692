from __future__ import annotations
import csv
import io
import logging
import re
import subprocess
from typing import Dict, Iterable, List, Optional

from ..models import PortRecord, PROTOCOLS, STATE_UNKNOWN
from ..utils.net import port_of, remote_or_none
from .base import Collector

logger = logging.getLogger(__name__)

NETSTAT_COMMAND = ["netstat", "-ano"]
TASKLIST_COMMAND = ["tasklist", "/FO", "CSV", "/NH"]

WMIC_CMDLINE_RE = re.compile(r"CommandLine=(.*)")

# "Image Name","PID","Session Name","Session#","Mem Usage"[,"Status","User Name",...]
TASKLIST_NAME, TASKLIST_PID, TASKLIST_USER = 0, 1, 6


def parse_netstat_line(line: str) -> Optional[PortRecord]:
    #   TCP    0.0.0.0:3000     0.0.0.0:0        LISTENING       1234
    #   UDP    0.0.0.0:5353     *:*                              1234
    parts = line.split()
    if len(parts) < 4:
        return None
    protocol = parts[0].upper()
    if protocol not in PROTOCOLS:
        return None
    if protocol == "TCP":
        if len(parts) < 5:
            return None
        state, pid_s = parts[3], parts[4]
    else:
        state, pid_s = STATE_UNKNOWN, parts[-1]
    try:
        pid = int(pid_s)
    except ValueError:
        return None
    port = port_of(parts[1])
    if not port or pid <= 0:
        return None
    return PortRecord(
        port=port,
        protocol=protocol,
        pid=pid,
        state=state,
        local_address=parts[1],
        remote_address=remote_or_none(parts[2]),
    )


def parse_netstat_output(output: str) -> List[PortRecord]:
    records: List[PortRecord] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        rec = parse_netstat_line(line)
        if rec is not None:
            records.append(rec)
    return records


def parse_tasklist_csv(output: str) -> List[List[str]]:
    rows: List[List[str]] = []
    for row in csv.reader(io.StringIO(output)):
        if len(row) < 2:
            continue
        rows.append([f.strip() for f in row])
    return rows


class WindowsCollector(Collector):
    name = "Windows"

    def build_command(self, start: Optional[int] = None, end: Optional[int] = None) -> List[str]:
        return list(NETSTAT_COMMAND)

    def build_process_command(self, pid: int) -> List[str]:
        return ["wmic", "process", "where", f"processid={pid}", "get", "commandline", "/format:list"]

    def build_owner_command(self, pid: int) -> List[str]:
        return ["tasklist", "/FI", f"PID eq {pid}", "/FO", "CSV", "/V", "/NH"]

    def parse_records(self, output: str) -> List[PortRecord]:
        return parse_netstat_output(output)

    def command_line(self, pid: int) -> str:
        m = WMIC_CMDLINE_RE.search(self._query(self.build_process_command(pid)))
        return m.group(1).strip() if m else ""

    def image_names(self) -> Dict[int, str]:
        names: Dict[int, str] = {}
        for row in parse_tasklist_csv(self._query(TASKLIST_COMMAND)):
            try:
                names[int(row[TASKLIST_PID])] = row[TASKLIST_NAME]
            except ValueError:
                continue
        return names

    def enrich(self, records: Iterable[PortRecord]) -> None:
        records = list(records)
        names = self.image_names() if records else {}
        for r in records:
            if not r.name:
                r.name = names.get(r.pid, "")
        super().enrich(records)
        for r in records:
            # without a resolvable command line, show the image name
            if not r.cmd:
                r.cmd = r.name

    def process_owner(self, pid: int) -> str:
        owner = super().process_owner(pid)
        if owner.startswith("INFO:"):
            return ""  # no task matched the filter
        if "," not in owner:
            return owner
        # CSV row from the tasklist fallback
        rows = parse_tasklist_csv(owner)
        if not rows or len(rows[0]) <= TASKLIST_USER:
            return ""
        return rows[0][TASKLIST_USER]

    def is_privileged_user(self, user: str) -> bool:
        u = user.upper()
        return "SYSTEM" in u or "NT AUTHORITY" in u

    def terminate(self, pid: int, force: bool = False) -> bool:
        argv = ["taskkill", "/PID", str(pid)]
        if force:
            argv.append("/F")
        try:
            res = self.runner(argv)
        except (OSError, subprocess.SubprocessError) as e:
            logger.info("taskkill for pid %s failed: %s", pid, e)
            return False
        if res.returncode != 0:
            logger.info("taskkill for pid %s exited %s: %s", pid, res.returncode, (res.stderr or "").strip())
            return False
        return True
