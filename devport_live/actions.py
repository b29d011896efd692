from __future__ import annotations
import logging
import webbrowser
from typing import Callable, Optional

from .collectors import Collector
from .models import ActionResult
from .scanner import PortScanner
from .topology.heuristics import local_url
from .utils.net import valid_port

logger = logging.getLogger(__name__)


class PortActions:
    """Terminate the owner of a port, open a port in the browser, check availability.

    None of these raise; failures come back as ActionResult / False.
    """

    def __init__(self, scanner: PortScanner, collector: Optional[Collector] = None,
                 opener: Callable[[str], bool] = webbrowser.open):
        self.scanner = scanner
        self.collector = collector or scanner.collector
        self.opener = opener

    def terminate(self, port: int, force: bool = False) -> ActionResult:
        try:
            rec = self.scanner.lookup(port)
            if rec is None:
                return ActionResult(False, f"No process found using port {port}", reason="not_found")

            pid, name = rec.pid, rec.name or "?"
            if self.collector.requires_elevation(pid):
                return ActionResult(
                    False,
                    f'Process "{name}" (PID: {pid}) requires elevated permissions to terminate. '
                    "Please run with administrator/sudo privileges.",
                    reason="elevation_required",
                )

            if self.collector.terminate(pid, force):
                logger.info("terminated %s (pid %s) on port %s force=%s", name, pid, port, force)
                return ActionResult(True, f'Successfully terminated process "{name}" (PID: {pid}) on port {port}')
            return ActionResult(
                False,
                f'Failed to terminate process "{name}" (PID: {pid}). '
                "The process may have already exited or requires elevated permissions.",
                reason="terminate_failed",
            )
        except Exception as e:
            logger.warning("terminate on port %s failed: %s", port, e)
            return ActionResult(False, f"Error terminating process on port {port}", reason="error", error=e)

    def open_in_browser(self, port: int, protocol: Optional[str] = None) -> ActionResult:
        if not valid_port(port):
            return ActionResult(False, f"Invalid port number: {port}", reason="invalid_port")
        if protocol is not None:
            protocol = str(protocol).lower()
        if protocol not in (None, "http", "https"):
            return ActionResult(False, f"Unsupported protocol: {protocol}", reason="invalid_protocol")
        url = local_url(port, protocol)
        try:
            opened = self.opener(url)
        except Exception as e:
            return ActionResult(False, f"Failed to open port {port} in browser", reason="browser_failed", error=e)
        if opened is False:
            return ActionResult(False, f"No browser available to open {url}", reason="browser_failed")
        return ActionResult(True, f"Opened {url} in default browser")

    def is_available(self, port: int) -> bool:
        try:
            return self.scanner.lookup(port) is None
        except Exception as e:
            # can't tell, so report the port as taken
            logger.debug("availability check for %s failed: %s", port, e)
            return False
