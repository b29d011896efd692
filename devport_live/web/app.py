from __future__ import annotations
import queue
from typing import Any, Optional

import orjson
from flask import Flask, Response, current_app, request

from ..actions import PortActions
from ..collectors.loop import ProcessMonitor
from ..config import CFG, DEV_RANGE
from ..errors import PortScanError, ValidationError
from ..scanner import PortScanner

EVENT_QUEUE_SIZE = 1000


def dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode()


def json_response(obj: Any, status: int = 200) -> Response:
    return Response(dumps(obj), status=status, mimetype="application/json")


def _int_arg(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def create_app(cfg: CFG, scanner: PortScanner, monitor: ProcessMonitor, actions: PortActions) -> Flask:
    app = Flask(__name__)
    app.config["SSE_KEEPALIVE"] = 15.0

    @app.errorhandler(ValidationError)
    def on_validation_error(e: ValidationError):
        return json_response({"error": e.kind, "message": str(e)}, 400)

    @app.errorhandler(PortScanError)
    def on_scan_error(e: PortScanError):
        current_app.logger.error("scan failed: %s", e)
        return json_response({"error": e.kind, "message": str(e)}, 500)

    @app.get("/api/platform")
    def api_platform():
        return json_response({
            "platform": scanner.collector.name,
            "cache_ttl": cfg.cache_ttl,
            "interval": cfg.interval,
        })

    @app.get("/api/ports")
    def api_ports():
        start, end = _int_arg("start"), _int_arg("end")
        if start is None and end is None:
            start, end = DEV_RANGE
        elif start is None or end is None:
            raise ValidationError("start and end must be given together")
        return json_response([r.to_dict() for r in scanner.scan(start, end)])

    @app.get("/api/ports/<int:port>")
    def api_port(port: int):
        rec = scanner.lookup(port)
        if rec is None:
            return json_response({"error": "not_found", "message": f"No process found using port {port}"}, 404)
        return json_response(rec.to_dict())

    @app.get("/api/ports/<int:port>/available")
    def api_available(port: int):
        return json_response({"port": port, "available": actions.is_available(port)})

    @app.post("/api/ports/<int:port>/terminate")
    def api_terminate(port: int):
        body = request.get_json(silent=True) or {}
        result = actions.terminate(port, force=bool(body.get("force", False)))
        if result.success:
            # cached dev-range results would still list the terminated process
            scanner.clear_cache()
        return json_response(result.to_dict())

    @app.post("/api/ports/<int:port>/open")
    def api_open(port: int):
        body = request.get_json(silent=True) or {}
        return json_response(actions.open_in_browser(port, body.get("protocol")).to_dict())

    @app.get("/api/snapshot")
    def api_snapshot():
        return json_response({
            "active": monitor.is_active(),
            "interval": monitor.interval,
            "ports": [r.to_dict() for r in monitor.get_current_ports()],
        })

    @app.post("/api/cache/clear")
    def api_cache_clear():
        scanner.clear_cache()
        return json_response({"ok": True})

    @app.get("/api/events")
    def api_events():
        q: queue.Queue = queue.Queue(maxsize=EVENT_QUEUE_SIZE)
        keepalive = float(current_app.config["SSE_KEEPALIVE"])
        logger = current_app.logger

        def push(kind: str):
            def _push(rec) -> None:
                try:
                    q.put_nowait((kind, rec))
                except queue.Full:
                    logger.warning("event stream backlog full, dropping %s for port %s", kind, rec.port)
            return _push

        unsubscribe = monitor.subscribe(
            on_added=push("port-added"),
            on_removed=push("port-removed"),
            on_updated=push("port-updated"),
        )

        def stream():
            try:
                yield ": connected\n\n"
                while True:
                    try:
                        kind, rec = q.get(timeout=keepalive)
                    except queue.Empty:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"event: {kind}\ndata: {dumps(rec.to_dict())}\n\n"
            finally:
                unsubscribe()

        return Response(stream(), mimetype="text/event-stream",
                        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})

    return app
