from __future__ import annotations
import re
from typing import List, Optional

from ..models import PortRecord, PROTOCOLS, STATE_UNKNOWN
from .base import Collector

LSOF_COMMAND = ["lsof", "-i", "-P", "-n"]

# NAME column of lsof -i:
#   *:3000 (LISTEN)
#   127.0.0.1:3000->127.0.0.1:54321 (ESTABLISHED)
#   [::1]:5432 (LISTEN)
#   *:5353
_HOST = r"\[[0-9A-Fa-f:.%\w]*\]|[^\s\[\]>]+?"
LSOF_NAME_RE = re.compile(
    rf"^(?P<lhost>{_HOST}):(?P<lport>\d+)"
    rf"(?:->(?P<rhost>{_HOST}):(?P<rport>\d+))?"
    r"(?:\s+\((?P<state>[A-Za-z_0-9]+)\))?\s*$")


def parse_lsof_line(line: str) -> Optional[PortRecord]:
    # COMMAND  PID  USER  FD  TYPE  DEVICE  SIZE/OFF  NODE  NAME
    parts = line.split()
    if len(parts) < 9:
        return None
    command = parts[0]
    try:
        pid = int(parts[1])
    except ValueError:
        return None
    node = parts[7].upper()
    if node not in PROTOCOLS or pid <= 0:
        return None
    m = LSOF_NAME_RE.match(" ".join(parts[8:]))
    if not m:
        return None
    port = int(m.group("lport"))
    if not 0 < port <= 65535:
        return None
    remote = None
    if m.group("rhost") and m.group("rport"):
        remote = f"{m.group('rhost')}:{m.group('rport')}"
    return PortRecord(
        port=port,
        protocol=node,
        pid=pid,
        name=command.replace("\\x20", " "),
        state=m.group("state") or STATE_UNKNOWN,
        local_address=f"{m.group('lhost')}:{m.group('lport')}",
        remote_address=remote,
    )


def parse_lsof_output(output: str) -> List[PortRecord]:
    records: List[PortRecord] = []
    for line in output.splitlines()[1:]:  # header
        line = line.strip()
        if not line:
            continue
        rec = parse_lsof_line(line)
        if rec is not None:
            records.append(rec)
    return records


class MacOSCollector(Collector):
    name = "macOS"
    # lsof exits 1 when it finds no matching files
    ok_returncodes = frozenset({0, 1})

    def build_command(self, start: Optional[int] = None, end: Optional[int] = None) -> List[str]:
        return list(LSOF_COMMAND)

    def parse_records(self, output: str) -> List[PortRecord]:
        return parse_lsof_output(output)

    def is_privileged_user(self, user: str) -> bool:
        # _www, _mdnsresponder, ... are launchd service accounts
        return user == "root" or user.startswith("_")
