# utrace/services/resolver.py
import asyncio
import logging
from typing import Any, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from utrace.errors import LookupServiceError

_LOG = logging.getLogger(__name__)

VALID_DNS_TYPES = ("A", "AAAA", "MX", "TXT", "NS", "CNAME", "SOA", "SRV", "PTR", "ANY")
# PTR needs an address, so ANY leaves it out
ANY_TYPES = ("A", "AAAA", "MX", "TXT", "NS", "CNAME", "SOA", "SRV")
NO_RECORD_CODES = ("ENOTFOUND", "ENODATA")


class DnsLookupError(LookupServiceError):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


def _error_code(e: Exception) -> str:
    if isinstance(e, dns.resolver.NXDOMAIN):
        return "ENOTFOUND"
    if isinstance(e, dns.resolver.NoAnswer):
        return "ENODATA"
    if isinstance(e, dns.resolver.NoNameservers):
        return "ESERVFAIL"
    if isinstance(e, dns.exception.Timeout):
        return "ETIMEOUT"
    return type(e).__name__


def _name(n) -> str:
    return n.to_text(omit_final_dot=True)


def _format_rdata(rdtype: str, rdata) -> Any:
    if rdtype in ("A", "AAAA"):
        return rdata.address
    if rdtype == "MX":
        return {"exchange": _name(rdata.exchange), "priority": rdata.preference}
    if rdtype == "TXT":
        return [s.decode("utf-8", errors="replace") for s in rdata.strings]
    if rdtype in ("NS", "CNAME", "PTR"):
        return _name(rdata.target)
    if rdtype == "SOA":
        return {
            "nsname": _name(rdata.mname),
            "hostmaster": _name(rdata.rname),
            "serial": rdata.serial,
            "refresh": rdata.refresh,
            "retry": rdata.retry,
            "expire": rdata.expire,
            "minttl": rdata.minimum,
        }
    if rdtype == "SRV":
        return {"priority": rdata.priority, "weight": rdata.weight, "port": rdata.port, "name": _name(rdata.target)}
    return rdata.to_text()


class DnsService:
    """Forward, reverse and multi-type DNS lookups over dnspython's async resolver."""

    def __init__(self, resolver: Optional[dns.asyncresolver.Resolver] = None, lifetime: float = 5.0):
        self.resolver = resolver or dns.asyncresolver.Resolver()
        self.resolver.lifetime = lifetime

    async def resolve(self, domain: str, rdtype: str) -> Any:
        try:
            answer = await self.resolver.resolve(domain, rdtype)
        except dns.exception.DNSException as e:
            code = _error_code(e)
            raise DnsLookupError(f"{rdtype} lookup for {domain} failed: {e}", code) from e
        records = [_format_rdata(rdtype, r) for r in answer]
        if rdtype == "SOA":
            return records[0] if records else None
        return records

    async def resolve_any(self, domain: str) -> dict[str, Any]:
        """Query each of ANY_TYPES; only types with answers are returned."""
        results = await asyncio.gather(
            *(self.resolve(domain, t) for t in ANY_TYPES), return_exceptions=True,
        )
        records: dict[str, Any] = {}
        for rdtype, result in zip(ANY_TYPES, results):
            if isinstance(result, DnsLookupError):
                if result.code in NO_RECORD_CODES:
                    _LOG.debug("No %s record for %s", rdtype, domain)
                else:
                    _LOG.warning("DNS %s lookup for %s failed: %s", rdtype, domain, result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result:
                records[rdtype] = result
        return records

    async def reverse(self, ip: str) -> list[str]:
        try:
            answer = await self.resolver.resolve_address(ip)
        except dns.exception.DNSException as e:
            raise DnsLookupError(f"rDNS lookup for {ip} failed: {e}", _error_code(e)) from e
        return [_name(r.target) for r in answer]

    async def reverse_or_error(self, ip: str):
        """Hostnames for ip, or an {"error": ...} slot for API responses."""
        try:
            hostnames = await self.reverse(ip)
        except DnsLookupError as e:
            if e.code in NO_RECORD_CODES:
                _LOG.debug("No PTR record for %s (%s)", ip, e.code)
            else:
                _LOG.warning("rDNS lookup error for %s: %s", ip, e)
            return {"error": f"rDNS lookup failed ({e.code})"}
        _LOG.debug("rDNS for %s: %s", ip, hostnames)
        return hostnames
