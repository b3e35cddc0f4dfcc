# utrace/web/keys.py
from aiohttp import web

from utrace.config import Settings
from utrace.prober.base import ProcessRunner
from utrace.services.geo import GeoLookup
from utrace.services.resolver import DnsService
from utrace.services.tls import TlsInspector
from utrace.services.whois import WhoisService

SETTINGS = web.AppKey("settings", Settings)
RUNNER = web.AppKey("runner", ProcessRunner)
GEO = web.AppKey("geo", GeoLookup)
DNS = web.AppKey("dns", DnsService)
WHOIS = web.AppKey("whois", WhoisService)
TLS = web.AppKey("tls", TlsInspector)
