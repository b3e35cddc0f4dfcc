# utrace/web/routes/info.py
import logging

from aiohttp import web

from utrace.errors import InvalidTargetError
from utrace.netutil import parse_ip, validate_target
from utrace.web.keys import DNS, GEO, SETTINGS
from utrace.web.ratelimit import client_ip

_LOG = logging.getLogger(__name__)

routes = web.RouteTableDef()

LOCALHOST_INFO = {
    "ip": "127.0.0.1",
    "geo": {"city": "Local", "country": "Network", "countryName": "Local Network"},
    "asn": {"number": "N/A", "organization": "Local Network"},
    "rdns": ["localhost"],
}


async def describe(request: web.Request, ip: str) -> dict:
    """geo + asn + reverse DNS for one address."""
    geo = request.app[GEO]
    rdns = await request.app[DNS].reverse_or_error(ip)
    return {"ip": ip, "geo": geo.city(ip), "asn": geo.asn(ip), "rdns": rdns}


@routes.get("/api/ipinfo")
async def ipinfo(request: web.Request) -> web.Response:
    """Who the caller is, as seen from here."""
    ip = client_ip(request, request.app[SETTINGS].trust_proxy_hops)
    addr = parse_ip(ip)
    if addr is not None and addr.is_loopback:
        return web.json_response(LOCALHOST_INFO)
    if addr is None:
        _LOG.warning("Could not determine a valid client IP, got %r", ip)
        raise InvalidTargetError(f"Could not determine a valid IP address: {ip}")
    _LOG.info("ipinfo request from %s", ip)
    return web.json_response(await describe(request, ip))


@routes.get("/api/lookup")
async def lookup(request: web.Request) -> web.Response:
    target = validate_target(request.query.get("targetIp", "").strip())
    _LOG.info("Lookup request for %s", target)
    return web.json_response({"success": True, **await describe(request, str(target))})


@routes.get("/api/version")
async def version(request: web.Request) -> web.Response:
    return web.json_response({"commitSha": request.app[SETTINGS].commit_sha})
