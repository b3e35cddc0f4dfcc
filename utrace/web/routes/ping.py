# utrace/web/routes/ping.py
import logging

from aiohttp import web

from utrace.errors import CommandError
from utrace.netutil import validate_target
from utrace.parse.ping import parse_ping_output
from utrace.services.commands import run_command
from utrace.web.keys import SETTINGS

_LOG = logging.getLogger(__name__)

routes = web.RouteTableDef()

PING_TIMEOUT_S = 30.0


@routes.get("/api/ping")
async def ping(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS]
    target = validate_target(request.query.get("targetIp", "").strip())
    count = settings.effective_ping_count
    _LOG.info("Ping request for %s (count=%d)", target, count)

    try:
        res = await run_command(settings.ping_bin, ["-c", str(count), str(target)], timeout=PING_TIMEOUT_S)
    except CommandError as e:
        output = e.stdout or e.stderr or str(e)
        parsed = parse_ping_output(output)
        # exit 1: ping ran but got no replies
        if e.exit_code == 1 and e.stdout and parsed["error"]:
            _LOG.warning("Ping to %s returned no replies: %s", target, parsed["error"])
            return web.json_response({"success": False, **parsed})
        _LOG.error("Ping to %s failed: %s", target, e)
        return web.json_response({
            "success": False,
            "error": f"Ping command failed: {parsed['error'] or e}",
            "rawOutput": parsed["rawOutput"] or output,
        }, status=500)

    parsed = parse_ping_output(res.stdout)
    if parsed["error"]:
        _LOG.warning("Ping to %s returned no replies: %s", target, parsed["error"])
        return web.json_response({"success": False, **parsed})
    return web.json_response({"success": True, **parsed})
