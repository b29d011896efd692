import pytest

from devport_live.config import init_cfg_from_args
from devport_live.main import parse_args
from devport_live.utils.net import port_of, remote_or_none, valid_port


def test_defaults():
    cfg = init_cfg_from_args(parse_args([]))

    assert (cfg.host, cfg.port) == ("127.0.0.1", 8765)
    assert cfg.interval == 5.0
    assert cfg.cache_ttl == 3.0
    assert cfg.command_timeout is None
    assert cfg.rules_path is None
    assert cfg.monitor is True
    assert cfg.log_level == "INFO"


def test_flags():
    cfg = init_cfg_from_args(parse_args([
        "--host", "0.0.0.0", "--port", "9000", "--interval", "0.01", "--cache-ttl", "-1",
        "--command-timeout", "2.5", "--rules", "rules.yaml", "--no-monitor", "--log-level", "debug",
    ]))

    assert cfg.host == "0.0.0.0"
    assert cfg.port == 9000
    assert cfg.interval == 0.1
    assert cfg.cache_ttl == 0.0
    assert cfg.command_timeout == 2.5
    assert cfg.rules_path == "rules.yaml"
    assert cfg.monitor is False
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize("addr,port", [
    ("127.0.0.1:3000", 3000),
    ("[::1]:5432", 5432),
    ("*:5353", 5353),
    ("127.0.0.53%lo:53", 53),
    ("*:*", None),
    ("*", None),
    ("*:0", None),
    ("0.0.0.0:70000", None),
    ("*:65535", 65535),
    ("", None),
])
def test_port_of(addr, port):
    assert port_of(addr) == port


@pytest.mark.parametrize("addr,expected", [
    ("0.0.0.0:*", None),
    ("[::]:*", None),
    ("0.0.0.0:0", None),
    ("*:*", None),
    (None, None),
    ("127.0.0.1:51234", "127.0.0.1:51234"),
])
def test_remote_or_none(addr, expected):
    assert remote_or_none(addr) == expected


def test_valid_port():
    assert valid_port(1) and valid_port(65535)
    assert not valid_port(0)
    assert not valid_port(True)
    assert not valid_port(3000, 1024, 2048)
