"""Tests for the JSON API and the event stream."""

import errno
import signal
import time

import orjson
import pytest

from conftest import FakeClock, FakeRunner, completed, fixture_text
from devport_live.actions import PortActions
from devport_live.collectors import ProcessMonitor
from devport_live.collectors.macos import LSOF_COMMAND, MacOSCollector
from devport_live.config import CFG
from devport_live.scanner import PortScanner
from devport_live.web import create_app

LSOF = tuple(LSOF_COMMAND)


class Env:
    def __init__(self, response=None):
        self.runner = FakeRunner({LSOF: response or completed(stdout=fixture_text("lsof_macos.txt"))})
        self.opened = []
        collector = MacOSCollector(runner=self.runner)
        self.scanner = PortScanner(collector, runner=self.runner, clock=FakeClock())
        self.monitor = ProcessMonitor(self.scanner)
        self.actions = PortActions(self.scanner, collector, opener=lambda url: self.opened.append(url) or True)
        self.app = create_app(CFG(), self.scanner, self.monitor, self.actions)
        self.app.config["TESTING"] = True
        self.app.config["SSE_KEEPALIVE"] = 0.05
        self.client = self.app.test_client()


@pytest.fixture
def env():
    e = Env()
    yield e
    e.monitor.cleanup()


def test_platform(env):
    body = env.client.get("/api/platform").get_json()

    assert body == {"platform": "macOS", "cache_ttl": 3.0, "interval": 5.0}


def test_ports_defaults_to_dev_range(env):
    resp = env.client.get("/api/ports")

    assert resp.status_code == 200
    assert resp.mimetype == "application/json"
    assert sorted(r["port"] for r in resp.get_json()) == [3000, 3000, 5353, 5432, 8000]


def test_ports_explicit_range(env):
    body = env.client.get("/api/ports?start=8000&end=8000").get_json()

    assert len(body) == 1
    assert body[0]["pid"] == 5151
    assert body[0]["local_address"] == "127.0.0.1:8000"
    assert body[0]["framework"] is None


@pytest.mark.parametrize("query", [
    "start=80&end=90",
    "start=5000&end=4000",
    "start=3000",
    "start=abc&end=4000",
])
def test_ports_bad_range_is_400(env, query):
    resp = env.client.get(f"/api/ports?{query}")

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation"
    assert env.runner.calls == []


def test_ports_scan_failure_is_500():
    e = Env(FileNotFoundError(errno.ENOENT, "No such file or directory", "lsof"))

    resp = e.client.get("/api/ports")

    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "command_not_found"
    assert "lsof" in body["message"]


def test_single_port(env):
    resp = env.client.get("/api/ports/8000")

    assert resp.status_code == 200
    assert resp.get_json()["name"] == "Python"


def test_single_port_free_is_404(env):
    resp = env.client.get("/api/ports/4000")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_single_port_out_of_scan_range_is_400(env):
    assert env.client.get("/api/ports/80").status_code == 400


def test_available(env):
    assert env.client.get("/api/ports/4000/available").get_json() == {"port": 4000, "available": True}
    assert env.client.get("/api/ports/3000/available").get_json()["available"] is False


def test_terminate_clears_cache(env, procs):
    procs[5151] = {"username": "alice"}

    env.client.get("/api/ports")
    body = env.client.post("/api/ports/8000/terminate").get_json()
    env.client.get("/api/ports")

    assert body["success"] is True
    assert procs[5151]["signals"] == [signal.SIGTERM]
    # scan, lookup, scan again after the cache was dropped
    assert env.runner.count(LSOF) == 3


def test_terminate_force(env, procs):
    procs[5151] = {"username": "alice"}

    env.client.post("/api/ports/8000/terminate", json={"force": True})

    assert procs[5151]["signals"] == [signal.SIGKILL]


def test_terminate_service_account_needs_elevation(env, procs):
    procs[777] = {"username": "_postgres"}

    body = env.client.post("/api/ports/5432/terminate").get_json()

    assert body["success"] is False
    assert body["reason"] == "elevation_required"
    assert "signals" not in procs[777]


def test_terminate_free_port(env):
    body = env.client.post("/api/ports/4000/terminate").get_json()

    assert body == {"success": False, "message": "No process found using port 4000", "reason": "not_found"}


def test_open(env):
    body = env.client.post("/api/ports/3000/open", json={"protocol": "https"}).get_json()

    assert body["success"] is True
    assert env.opened == ["https://localhost:3000"]


def test_open_default_protocol(env):
    env.client.post("/api/ports/8443/open")

    assert env.opened == ["https://localhost:8443"]


def test_snapshot(env):
    before = env.client.get("/api/snapshot").get_json()
    env.monitor.tick()
    after = env.client.get("/api/snapshot").get_json()

    assert before == {"active": False, "interval": 5.0, "ports": []}
    assert sorted(r["port"] for r in after["ports"]) == [3000, 5353, 5432, 8000]


def test_cache_clear(env):
    env.client.get("/api/ports")

    assert env.client.post("/api/cache/clear").get_json() == {"ok": True}
    env.client.get("/api/ports")
    assert env.runner.count(LSOF) == 2


def read_event(chunks, deadline=2.0):
    end = time.monotonic() + deadline
    while time.monotonic() < end:
        chunk = next(chunks).decode()
        if chunk.startswith("event: "):
            return chunk
    raise AssertionError("no event received")


def test_event_stream(env):
    resp = env.client.get("/api/events", buffered=False)
    chunks = iter(resp.response)

    assert resp.mimetype == "text/event-stream"
    assert next(chunks) == b": connected\n\n"

    env.monitor.tick()
    chunk = read_event(chunks)

    kind, data = chunk.strip().split("\n")
    assert kind == "event: port-added"
    assert orjson.loads(data[len("data: "):])["port"] in (3000, 5353, 5432, 8000)

    resp.close()
    assert env.monitor._subscribers == []


def test_event_stream_keepalive(env):
    resp = env.client.get("/api/events", buffered=False)
    chunks = iter(resp.response)

    next(chunks)

    assert next(chunks) == b": keep-alive\n\n"
    resp.close()
