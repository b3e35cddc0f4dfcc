# utrace/web/routes/traceroute.py
import logging

from aiohttp import web

from utrace.stream.controller import SessionController
from utrace.stream.streamer import EventStreamer
from utrace.web.keys import RUNNER, SETTINGS
from utrace.web.ratelimit import client_ip

_LOG = logging.getLogger(__name__)

routes = web.RouteTableDef()

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@routes.get("/api/traceroute")
async def traceroute_stream(request: web.Request) -> web.StreamResponse:
    """
    GET /api/traceroute?targetIp=<ip>

    Validation failures are answered with plain JSON (ValidationError is
    rendered by the error middleware). Once the target is accepted the
    response switches to text/event-stream and carries hop/info/error/end
    frames until the probe exits or the client goes away.
    """
    settings = request.app[SETTINGS]
    ip = client_ip(request, settings.trust_proxy_hops)
    raw = request.query.get("targetIp", "").strip()
    _LOG.info("Traceroute stream request from %s for %r", ip, raw)

    response = web.StreamResponse(status=200, headers=SSE_HEADERS)
    controller = SessionController(
        request.app[RUNNER],
        EventStreamer(response),
        traceroute_bin=settings.traceroute_bin,
        max_duration=settings.traceroute_max_duration,
        request_ip=ip,
    )
    controller.validate(raw)

    await response.prepare(request)
    await controller.run()
    return response
