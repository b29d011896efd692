"""Shared pytest fixtures for all tests."""

import subprocess
from pathlib import Path

import psutil
import pytest

from devport_live.collectors import reset_collector
from devport_live.models import PortRecord

FIXTURES = Path(__file__).parent / "fixtures"

DENIED = object()
GONE = object()


def fixture_text(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def completed(argv=(), stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(list(argv), returncode, stdout, stderr)


def record(port=3000, protocol="TCP", pid=111, **kw):
    kw.setdefault("name", "node")
    kw.setdefault("state", "LISTEN")
    kw.setdefault("local_address", f"*:{port}")
    return PortRecord(port=port, protocol=protocol, pid=pid, **kw)


class FakeRunner:
    """Stands in for run_command. Responses are keyed by argv tuple."""

    def __init__(self, responses=None, default=None):
        self.responses = dict(responses or {})
        self.default = default if default is not None else completed(returncode=1)
        self.calls = []

    def __call__(self, argv, timeout=None):
        self.calls.append(list(argv))
        resp = self.responses.get(tuple(argv), self.default)
        if isinstance(resp, BaseException):
            raise resp
        if callable(resp):
            return resp(argv)
        return resp

    def count(self, argv) -> int:
        return sum(1 for c in self.calls if c == list(argv))


class FakeProcess:
    def __init__(self, pid, table):
        info = table.get(pid)
        if info is None:
            raise psutil.NoSuchProcess(pid)
        self.pid = pid
        self._info = info

    def _get(self, key, default):
        value = self._info.get(key, default)
        if value is DENIED:
            raise psutil.AccessDenied(self.pid)
        if value is GONE:
            raise psutil.NoSuchProcess(self.pid)
        return value

    def name(self):
        return self._get("name", "")

    def cmdline(self):
        return self._get("cmdline", [])

    def username(self):
        return self._get("username", "")

    def send_signal(self, sig):
        self._get("signal", None)
        self._info.setdefault("signals", []).append(sig)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def procs(monkeypatch):
    """Process table seen through psutil.Process; empty means every pid has exited."""
    table = {}
    monkeypatch.setattr(psutil, "Process", lambda pid: FakeProcess(pid, table))
    return table


@pytest.fixture(autouse=True)
def isolated_collector():
    reset_collector()
    yield
    reset_collector()


@pytest.fixture
def clock():
    return FakeClock()
