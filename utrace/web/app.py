# utrace/web/app.py
import logging
import time
from pathlib import Path
from typing import Optional

from aiohttp import web

from utrace.config import Settings
from utrace.errors import ValidationError
from utrace.prober.base import ProcessRunner
from utrace.prober.subprocess_runner import SubprocessRunner
from utrace.services.geo import GeoLookup
from utrace.services.resolver import DnsService
from utrace.services.tls import TlsInspector
from utrace.services.whois import WhoisService
from utrace.web.keys import DNS, GEO, RUNNER, SETTINGS, TLS, WHOIS
from utrace.web.ratelimit import SlidingWindowLimiter, rate_limit_middleware
from utrace.web.routes import info, lookups, ping, traceroute

_LOG = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

RATE_LIMITED_PATHS = (
    "/api/ping",
    "/api/traceroute",
    "/api/lookup",
    "/api/dns-lookup",
    "/api/whois-lookup",
    "/api/ssl-check",
)


@web.middleware
async def request_logger(request: web.Request, handler):
    start = time.monotonic()
    status = "-"
    try:
        response = await handler(request)
        status = response.status
        return response
    finally:
        _LOG.debug("%s %s %s (%.1fms)", request.method, request.path_qs, status,
                   (time.monotonic() - start) * 1000)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ValidationError as e:
        return web.json_response({"success": False, "error": e.message}, status=e.status)
    except web.HTTPException:
        raise
    except Exception:
        _LOG.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response({"success": False, "error": "Internal server error."}, status=500)


async def index(request: web.Request) -> web.FileResponse:
    return web.FileResponse(STATIC_DIR / "index.html")


def _geo_context(geo: GeoLookup):
    async def ctx(app: web.Application):
        geo.open()
        yield
        geo.close()
        _LOG.info("MaxMind databases closed")
    return ctx


def create_app(settings: Settings,
               runner: Optional[ProcessRunner] = None,
               geo: Optional[GeoLookup] = None,
               dns: Optional[DnsService] = None,
               whois: Optional[WhoisService] = None,
               tls: Optional[TlsInspector] = None) -> web.Application:
    """
    Wire services into an aiohttp application. Anything left as None is
    built from settings; tests pass fakes instead.
    """
    limiter = SlidingWindowLimiter(settings.rate_limit_window_s, settings.effective_rate_limit)
    app = web.Application(middlewares=[
        request_logger,
        error_middleware,
        rate_limit_middleware(limiter, RATE_LIMITED_PATHS, settings.trust_proxy_hops),
    ])

    geo = geo or GeoLookup(settings.geoip_city_db, settings.geoip_asn_db)
    app[SETTINGS] = settings
    app[RUNNER] = runner or SubprocessRunner()
    app[GEO] = geo
    app[DNS] = dns or DnsService()
    app[WHOIS] = whois or WhoisService(settings.whois_bin, settings.whois_timeout_ms)
    app[TLS] = tls or TlsInspector(timeout=settings.ssl_timeout_s, openssl_bin=settings.openssl_bin)
    app.cleanup_ctx.append(_geo_context(geo))

    for module in (traceroute, ping, info, lookups):
        app.router.add_routes(module.routes)
    app.router.add_get("/", index)
    app.router.add_static("/static", STATIC_DIR)

    _LOG.info("App configured (env=%s, rate limit=%d/%ss)",
              settings.env, settings.effective_rate_limit, settings.rate_limit_window_s)
    return app
