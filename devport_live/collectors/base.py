from __future__ import annotations
import logging
import signal
import subprocess
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import psutil

from ..models import PortRecord

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def run_command(argv: Sequence[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    """Run argv and capture text output. OS errors and timeouts propagate to the caller."""
    return subprocess.run(list(argv), capture_output=True, text=True, timeout=timeout)


class Collector:
    """Builds the platform's socket listing command and turns its output into PortRecords.

    Subclasses implement build_command() and parse_records(); enrichment,
    ownership and termination default to the POSIX behaviour.
    """

    name = "generic"
    ok_returncodes = frozenset({0})

    def __init__(self, runner: Runner = run_command):
        self.runner = runner

    # -- enumeration -------------------------------------------------------

    def build_command(self, start: Optional[int] = None, end: Optional[int] = None) -> List[str]:
        # None of the supported tools filters by port range; the scanner does it.
        raise NotImplementedError

    def build_process_command(self, pid: int) -> List[str]:
        return ["ps", "-p", str(pid), "-o", "command="]

    def build_owner_command(self, pid: int) -> List[str]:
        return ["ps", "-p", str(pid), "-o", "user="]

    def parse_records(self, output: str) -> List[PortRecord]:
        raise NotImplementedError

    def parse_output(self, output: str) -> List[PortRecord]:
        records = self.parse_records(output)
        self.enrich(records)
        return records

    def on_command_missing(self) -> None:
        """Called by the scanner when the enumeration binary could not be executed."""

    # -- per-process lookups -----------------------------------------------

    def _query(self, argv: Sequence[str]) -> str:
        try:
            res = self.runner(argv)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("%s failed: %s", argv[0], e)
            return ""
        if res.returncode != 0:
            return ""
        return (res.stdout or "").strip()

    def command_line(self, pid: int) -> str:
        return self._query(self.build_process_command(pid))

    def process_info(self, pid: int) -> Optional[Tuple[str, str]]:
        """(name, command line) for pid, or None if the process is gone."""
        try:
            p = psutil.Process(pid)
            name = p.name()
        except psutil.NoSuchProcess:
            return None
        except psutil.AccessDenied:
            return ("", self.command_line(pid))
        try:
            cmd = " ".join(p.cmdline())
        except psutil.NoSuchProcess:
            return (name, "")
        except psutil.AccessDenied:
            cmd = self.command_line(pid)
        return (name, cmd)

    def enrich(self, records: Iterable[PortRecord]) -> None:
        by_pid: dict[int, list[PortRecord]] = {}
        for r in records:
            by_pid.setdefault(r.pid, []).append(r)
        for pid, recs in by_pid.items():
            info = self.process_info(pid)
            if info is None:
                # exited between enumeration and lookup; keep what the listing gave us
                continue
            name, cmd = info
            for r in recs:
                if not r.name and name:
                    r.name = name
                if cmd:
                    r.cmd = cmd

    def process_owner(self, pid: int) -> str:
        try:
            return psutil.Process(pid).username()
        except psutil.Error:
            return self._query(self.build_owner_command(pid))

    # -- actions -----------------------------------------------------------

    def is_privileged_user(self, user: str) -> bool:
        return user == "root"

    def requires_elevation(self, pid: int) -> bool:
        user = self.process_owner(pid)
        if not user:
            # unknown owner: let the termination attempt decide
            return False
        return self.is_privileged_user(user)

    def terminate(self, pid: int, force: bool = False) -> bool:
        sig = signal.SIGKILL if force else signal.SIGTERM
        try:
            psutil.Process(pid).send_signal(sig)
        except psutil.Error as e:
            logger.info("could not signal pid %s: %s", pid, e)
            return False
        return True
