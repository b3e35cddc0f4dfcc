# utrace/web/routes/lookups.py
import logging

from aiohttp import web

from utrace.errors import ValidationError
from utrace.netutil import is_valid_domain, is_valid_ip
from utrace.services.resolver import NO_RECORD_CODES, VALID_DNS_TYPES, DnsLookupError
from utrace.services.tls import TlsError
from utrace.services.whois import WhoisError
from utrace.web.keys import DNS, TLS, WHOIS

_LOG = logging.getLogger(__name__)

routes = web.RouteTableDef()


# -------------------------------
# DNS
# -------------------------------
@routes.get("/api/dns-lookup")
async def dns_lookup(request: web.Request) -> web.Response:
    domain = request.query.get("domain", "").strip()
    rdtype = request.query.get("type", "ANY").strip().upper() or "ANY"
    if not is_valid_domain(domain):
        raise ValidationError("Invalid domain name provided.")
    if rdtype not in VALID_DNS_TYPES:
        _LOG.warning("Invalid DNS type %r requested, defaulting to ANY", rdtype)
        rdtype = "ANY"

    dns = request.app[DNS]
    _LOG.info("DNS %s lookup for %s", rdtype, domain)
    try:
        if rdtype == "ANY":
            records = await dns.resolve_any(domain)
        else:
            records = await dns.resolve(domain, rdtype)
    except DnsLookupError as e:
        if e.code in NO_RECORD_CODES:
            return web.json_response({
                "success": True, "domain": domain, "type": rdtype, "records": [],
                "message": f"No {rdtype} records found for {domain}.",
            })
        _LOG.error("DNS lookup for %s (%s) failed: %s", domain, rdtype, e)
        return web.json_response({
            "success": False,
            "error": f"DNS lookup failed: {e.code}",
            "details": str(e),
        }, status=502 if e.code == "ESERVFAIL" else 500)

    return web.json_response({"success": True, "domain": domain, "type": rdtype, "records": records})


# -------------------------------
# WHOIS
# -------------------------------
@routes.get("/api/whois-lookup")
async def whois_lookup(request: web.Request) -> web.Response:
    query = request.query.get("query", "").strip()
    if not (is_valid_domain(query) or is_valid_ip(query)):
        raise ValidationError("Invalid domain name or IP address provided for WHOIS lookup.")

    _LOG.info("WHOIS lookup for %s", query)
    try:
        result = await request.app[WHOIS].lookup(query)
    except WhoisError as e:
        _LOG.error("WHOIS lookup for %s failed: %s", query, e)
        return web.json_response({"success": False, "error": str(e)}, status=e.status)
    return web.json_response({"success": True, "query": query, "result": result})


# -------------------------------
# TLS certificate
# -------------------------------
@routes.get("/api/ssl-check")
async def ssl_check(request: web.Request) -> web.Response:
    domain = request.query.get("domain", "").strip()
    if not domain:
        raise ValidationError("Domain parameter is required.")
    if not is_valid_domain(domain):
        raise ValidationError("Invalid domain name provided.")

    _LOG.info("SSL check for %s", domain)
    try:
        report = await request.app[TLS].check(domain)
    except TlsError as e:
        _LOG.error("SSL check for %s failed: %s (%s)", domain, e, e.details)
        return web.json_response({"success": False, "error": str(e), "details": e.details}, status=500)
    return web.json_response({"success": True, **report})
