
# Status HTTP layer: a thin aiohttp.web front over RegionMonitor.get_status().

#   GET /api/status -> 200 [RegionStatus, ...]
#                      503 {"error": "Monitoring system initializing"}   before the first cycle
#                      503 {"error": "Monitoring system not initialized"} region data failed to load
#   GET /health     -> 200 {"status": "ok", "monitor": <state>}

import logging

from aiohttp import web

from region_monitor.errors import NotReadyError
from region_monitor.orchestrator import RegionMonitor

log = logging.getLogger(__name__)

MONITOR_KEY = web.AppKey("monitor", RegionMonitor)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _json(data: object, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, headers=_CORS_HEADERS)


async def handle_status(request: web.Request) -> web.Response:
    monitor = request.app.get(MONITOR_KEY)
    if monitor is None:
        return _json({"error": "Monitoring system not initialized"}, status=503)
    try:
        statuses = monitor.get_status()
    except NotReadyError:
        return _json({"error": "Monitoring system initializing"}, status=503)
    return _json([s.to_dict() for s in statuses])


async def handle_health(request: web.Request) -> web.Response:
    monitor = request.app.get(MONITOR_KEY)
    state = monitor.state.value if monitor is not None else "not_initialized"
    return _json({"status": "ok", "monitor": state})


async def handle_preflight(request: web.Request) -> web.Response:
    return web.Response(status=200, headers=_CORS_HEADERS)


def create_app(monitor: RegionMonitor | None) -> web.Application:
    """
    Build the status app. monitor is None when region data could not be
    loaded; the routes then report "not initialized" until restart.
    """
    app = web.Application()
    if monitor is not None:
        app[MONITOR_KEY] = monitor
    app.router.add_get("/api/status", handle_status)
    app.router.add_get("/health", handle_health)
    app.router.add_route("OPTIONS", "/api/status", handle_preflight)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving app in the background; caller must await runner.cleanup()."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("Status available at http://%s:%d/api/status", host, port)
    return runner
