from __future__ import annotations
import argparse
import logging

from .actions import PortActions
from .collectors import ProcessMonitor, get_collector, platform_name
from .config import init_cfg_from_args
from .errors import PortScanError
from .rules import load_rules
from .scanner import PortScanner
from .web import create_app

logger = logging.getLogger("devport_live")

def parse_args(argv=None):
    ap = argparse.ArgumentParser(description='Live view of local dev ports and the processes that own them')
    ap.add_argument('--host', type=str, default='127.0.0.1')
    ap.add_argument('--port', type=int, default=8765)
    ap.add_argument('--interval', type=float, default=5.0, help='seconds between monitor scans')
    ap.add_argument('--cache-ttl', type=float, default=3.0, help='seconds a range scan is reused')
    ap.add_argument('--command-timeout', type=float, default=None, help='kill the listing command after N seconds')
    ap.add_argument('--rules', type=str, default=None, help='extra framework rules (YAML or JSON list)')
    ap.add_argument('--no-monitor', action='store_true', help='serve scans on demand only; no /api/events updates')
    ap.add_argument('--log-level', type=str, default='INFO')
    return ap.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    cfg = init_cfg_from_args(args)
    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO),
                        format='[%(levelname)s] %(name)s: %(message)s')

    collector = get_collector()
    scanner = PortScanner(collector, cache_ttl=cfg.cache_ttl, rules=load_rules(cfg.rules_path),
                          command_timeout=cfg.command_timeout)
    monitor = ProcessMonitor(scanner)
    actions = PortActions(scanner, collector)

    if cfg.monitor:
        try:
            ports = monitor.start(cfg.interval)
            logger.info("%d active dev ports on %s", len(ports), platform_name())
        except PortScanError as e:
            logger.error("initial scan failed, monitor not started: %s", e)

    app = create_app(cfg, scanner, monitor, actions)
    logger.info("Serving on http://%s:%d", cfg.host, cfg.port)
    try:
        app.run(host=cfg.host, port=cfg.port, debug=False, use_reloader=False, threaded=True)
    finally:
        monitor.cleanup()

if __name__ == '__main__':
    main()
